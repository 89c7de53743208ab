"""
Unit tests for WHERE/HAVING condition trees.
"""

import pytest

from ff_query.db.binder import ParameterBinder
from ff_query.db.builder import Subquery
from ff_query.db.conditions import NOT_SET, ConditionBuilder, normalize_operator
from ff_query.db.expressions import now
from ff_query.exceptions import (
    EmptyInList,
    InvalidArity,
    InvalidOperator,
    ParameterCountMismatch,
    QueryBuilderError,
)


def render(conditions, dialect):
    binder = ParameterBinder()
    sql = conditions.render(dialect, binder)
    return sql, binder.drain()


class TestOperators:
    """Test rendering of each operator family."""

    def test_in_renders_one_placeholder_per_value(self, sqlite):
        conditions = ConditionBuilder().where("age", [1, 2, 3], "IN")

        assert render(conditions, sqlite) == ('"age" IN (?,?,?)', [1, 2, 3])

    def test_not_in(self, sqlite):
        conditions = ConditionBuilder().where("id", (7, 8), "not in")

        assert render(conditions, sqlite) == ('"id" NOT IN (?,?)', [7, 8])

    def test_between_binds_min_then_max(self, sqlite):
        conditions = ConditionBuilder().where("age", [18, 65], "BETWEEN")

        assert render(conditions, sqlite) == ('"age" BETWEEN ? AND ?', [18, 65])

    def test_null_operators_bind_nothing(self, sqlite):
        """IS NULL ignores any value argument."""
        conditions = ConditionBuilder().where("deleted_at", "ignored", "IS NULL")

        assert render(conditions, sqlite) == ('"deleted_at" IS NULL', [])

    def test_none_value_becomes_null_check(self, sqlite):
        conditions = ConditionBuilder().where("a", None).where("b", None, "!=")

        assert render(conditions, sqlite) == ('"a" IS NULL AND "b" IS NOT NULL', [])

    def test_none_is_distinct_from_not_set(self):
        """The absent-value marker is its own object."""
        assert NOT_SET is not None
        assert not NOT_SET
        assert repr(NOT_SET) == "NOT_SET"

    def test_field_without_value_is_raw_fragment(self, sqlite):
        conditions = ConditionBuilder().where("age > 5")

        assert render(conditions, sqlite) == ("age > 5", [])

    def test_regexp_uses_dialect_operator(self, sqlite, postgres):
        conditions = ConditionBuilder().where("name", "^a", "REGEXP")

        assert render(conditions, sqlite) == ('"name" REGEXP ?', ["^a"])
        assert render(conditions, postgres) == ('"name" ~ ?', ["^a"])

    def test_expression_value_is_spliced(self, sqlite):
        """Literal expressions are written into the text, not bound."""
        conditions = ConditionBuilder().where("created_at", now("-1d"), "<")

        assert render(conditions, sqlite) == (
            "\"created_at\" < datetime('now', '-1 days')",
            [],
        )

    def test_operator_aliases(self):
        assert normalize_operator("is") == "IS NULL"
        assert normalize_operator("is  not") == "IS NOT NULL"
        assert normalize_operator("like") == "LIKE"


class TestValidation:
    """Malformed conditions fail when they are added."""

    def test_empty_in_list(self):
        with pytest.raises(EmptyInList, match="status"):
            ConditionBuilder().where("status", [], "IN")

    def test_between_wrong_arity(self):
        with pytest.raises(InvalidArity) as exc_info:
            ConditionBuilder().where("age", [18], "BETWEEN")

        assert exc_info.value.received == 1

    def test_between_scalar(self):
        with pytest.raises(InvalidArity):
            ConditionBuilder().where("age", 18, "NOT BETWEEN")

    def test_unknown_operator(self):
        with pytest.raises(InvalidOperator):
            ConditionBuilder().where("age", 1, "=~")

    def test_in_with_string_value(self):
        with pytest.raises(QueryBuilderError, match="sequence"):
            ConditionBuilder().where("status", "active", "IN")

    def test_comparison_needs_value(self):
        with pytest.raises(QueryBuilderError):
            ConditionBuilder().where("age", operator=">")

    def test_raw_placeholder_count(self):
        with pytest.raises(ParameterCountMismatch):
            ConditionBuilder().where_raw("a = ? AND b = ?", [1])

    def test_raw_backslash_escaped_literal(self):
        """A ? inside a MySQL-escaped literal is not a placeholder."""
        conditions = ConditionBuilder().where_raw(r"note = 'it\'s ?'")

        assert len(conditions) == 1

    def test_bad_connector(self):
        with pytest.raises(QueryBuilderError, match="AND or OR"):
            ConditionBuilder().add_condition("a", 1, "=", "XOR")


class TestGroupsAndOrder:
    """Nested groups and binding order."""

    def test_nested_group_renders_in_text_order(self, sqlite):
        """A AND (B OR C) AND D binds A, B, C, D."""
        conditions = (
            ConditionBuilder()
            .where("a", 1)
            .where_group(lambda g: g.where("b", 2).or_where("c", 3))
            .where("d", 4)
        )

        assert render(conditions, sqlite) == (
            '"a" = ? AND ("b" = ? OR "c" = ?) AND "d" = ?',
            [1, 2, 3, 4],
        )

    def test_or_group_first_node_has_no_connector(self, sqlite):
        conditions = ConditionBuilder().or_where_group(
            lambda g: g.where("x", 1).or_where_group(lambda h: h.where("y", 2).where("z", 3))
        )

        assert render(conditions, sqlite) == ('("x" = ? OR ("y" = ? AND "z" = ?))', [1, 2, 3])

    def test_empty_group_is_skipped(self, sqlite):
        conditions = ConditionBuilder().where("a", 1).where_group(lambda g: None).where("b", 2)

        assert render(conditions, sqlite) == ('"a" = ? AND "b" = ?', [1, 2])

    def test_raw_fragment_params_bind_in_place(self, sqlite):
        conditions = (
            ConditionBuilder()
            .where("a", 1)
            .or_where_raw("(b = ? OR c = ?)", [2, 3])
            .where("d", 4)
        )

        assert render(conditions, sqlite) == (
            '"a" = ? OR (b = ? OR c = ?) AND "d" = ?',
            [1, 2, 3, 4],
        )

    def test_subquery_values_merge_at_their_position(self, sqlite, settings):
        """Subquery values land between the parent's own values."""
        active_ids = Subquery(sqlite, settings=settings).where("active", 1).get("users", columns="id")
        conditions = (
            ConditionBuilder()
            .where("status", "paid")
            .where("user_id", active_ids, "IN")
            .where("total", 5, ">")
        )

        sql, params = render(conditions, sqlite)

        assert sql == (
            '"status" = ? AND "user_id" IN (SELECT "id" FROM "users" WHERE "active" = ?) '
            'AND "total" > ?'
        )
        assert params == ["paid", 1, 5]
        assert sql.count("?") == len(params)

    def test_exists_subquery(self, sqlite, settings):
        orders = Subquery(sqlite, settings=settings).where_raw("o.user_id = u.id").get("orders o")
        conditions = ConditionBuilder().add_subquery_condition(None, "EXISTS", orders)

        sql, params = render(conditions, sqlite)

        assert sql == 'EXISTS (SELECT * FROM "orders" AS "o" WHERE o.user_id = u.id)'
        assert params == []

    def test_exists_without_subquery(self):
        with pytest.raises(QueryBuilderError, match="subquery"):
            ConditionBuilder().where("x", 1, "EXISTS")
