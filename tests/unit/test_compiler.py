"""
Unit tests for statement rendering (builder state -> SQL + values).
"""

import pytest

from ff_query.db.builder import QueryBuilder
from ff_query.db.expressions import increment, now
from ff_query.exceptions import (
    InvalidOrderDirection,
    InvalidQueryOption,
    QueryBuilderError,
    UnsupportedOperation,
)


@pytest.fixture
def builder(settings):
    """Factory for a QueryBuilder on a given dialect."""

    def make(dialect, prefix=""):
        return QueryBuilder(dialect, prefix=prefix, settings=settings)

    return make


class TestSelect:
    """Test SELECT rendering."""

    def test_full_select(self, builder, sqlite):
        query = (
            builder(sqlite)
            .table("users")
            .columns("id, name")
            .where("age", 18, ">=")
            .order_by("name")
            .limit(10, 20)
            .to_sql()
        )

        assert query.sql == (
            'SELECT "id", "name" FROM "users" WHERE "age" >= ? ORDER BY "name" ASC LIMIT 10 OFFSET 20'
        )
        assert query.params == [18]

    def test_mysql_limit(self, builder, mysql):
        query = builder(mysql).table("users").limit(10, 20).to_sql()

        assert query.sql == "SELECT * FROM `users` LIMIT 20, 10"

    def test_sqlserver_top(self, builder, sqlserver):
        query = builder(sqlserver).table("users").limit(10).to_sql()

        assert query.sql == 'SELECT TOP (10) * FROM "users"'

    def test_sqlserver_offset_gets_placeholder_order(self, builder, sqlserver):
        """OFFSET .. FETCH is illegal without ORDER BY."""
        query = builder(sqlserver).table("users").limit(10, 20).to_sql()

        assert query.sql == (
            'SELECT * FROM "users" ORDER BY (SELECT NULL) OFFSET 20 ROWS FETCH NEXT 10 ROWS ONLY'
        )

    def test_sqlserver_offset_keeps_explicit_order(self, builder, sqlserver):
        query = builder(sqlserver).table("users").order_by("id", "desc").limit(10, 20).to_sql()

        assert query.sql == (
            'SELECT * FROM "users" ORDER BY "id" DESC OFFSET 20 ROWS FETCH NEXT 10 ROWS ONLY'
        )

    def test_where_group_having_order_bind_in_text_order(self, builder, sqlite):
        query = (
            builder(sqlite)
            .table("orders")
            .columns("user_id, SUM(total) AS spent")
            .where("status", "paid")
            .where_group(lambda g: g.where("region", "eu").or_where("region", "us"))
            .group_by("user_id")
            .having("SUM(total)", 100, ">")
            .order_by("user_id", "ASC", ["c", "a"])
            .to_sql()
        )

        assert query.sql == (
            'SELECT "user_id", SUM(total) AS spent FROM "orders" '
            'WHERE "status" = ? AND ("region" = ? OR "region" = ?) '
            'GROUP BY "user_id" HAVING SUM(total) > ? '
            'ORDER BY CASE "user_id" WHEN ? THEN 0 WHEN ? THEN 1 ELSE 2 END ASC'
        )
        assert query.params == ["paid", "eu", "us", 100, "c", "a"]
        assert query.sql.count("?") == len(query.params)

    def test_random_order(self, builder, sqlite, mysql):
        assert builder(sqlite).table("t").order_by("RAND()").to_sql().sql == (
            'SELECT * FROM "t" ORDER BY RANDOM()'
        )
        assert builder(mysql).table("t").order_by("RAND()").to_sql().sql == (
            "SELECT * FROM `t` ORDER BY RAND()"
        )

    def test_invalid_order_direction(self, builder, sqlite):
        with pytest.raises(InvalidOrderDirection):
            builder(sqlite).order_by("name", "SIDEWAYS")

    def test_no_table(self, builder, sqlite):
        with pytest.raises(QueryBuilderError, match="No table"):
            builder(sqlite).where("a", 1).to_sql()


class TestTablePrefix:
    """Test table prefixing."""

    def test_prefix_applied_once(self, builder, sqlite):
        """Setting the same prefix twice and rendering twice never stacks it."""
        query_builder = builder(sqlite).use_prefix("app_").use_prefix("app_").table("users")

        first = query_builder.to_sql()
        second = query_builder.to_sql()

        assert first.sql == 'SELECT * FROM "app_users" AS "users"'
        assert second.sql == first.sql
        assert query_builder.state.tables == ["users"]

    def test_prefix_from_constructor(self, builder, mysql):
        query = builder(mysql, prefix="app_").table("users u").join("posts p", "p.user_id = u.id").to_sql()

        assert query.sql == (
            "SELECT * FROM `app_users` AS `u` INNER JOIN `app_posts` AS `p` ON p.user_id = u.id"
        )

    def test_schema_qualified_names_are_not_prefixed(self, builder, sqlite):
        query = builder(sqlite, prefix="app_").table("main.users").to_sql()

        assert query.sql == 'SELECT * FROM "main"."users"'

    def test_subquery_inherits_prefix(self, builder, sqlite):
        parent = builder(sqlite, prefix="app_")
        ids = parent.subquery().get("admins", columns="user_id")

        query = parent.table("users").where("id", ids, "IN").to_sql()

        assert query.sql == (
            'SELECT * FROM "app_users" AS "users" WHERE "id" IN (SELECT "user_id" FROM "app_admins" AS "admins")'
        )

    def test_qualified_columns_resolve_against_prefixed_tables(self, builder, sqlite):
        """Bare-name qualifiers keep working once a prefix is set."""
        query = (
            builder(sqlite, prefix="app_")
            .table("users")
            .left_join("posts", "posts.user_id = users.id")
            .where("users.id", 1)
            .to_sql()
        )

        assert query.sql == (
            'SELECT * FROM "app_users" AS "users" '
            'LEFT JOIN "app_posts" AS "posts" ON posts.user_id = users.id '
            'WHERE "users"."id" = ?'
        )

    def test_prefixed_mutation_targets(self, builder, sqlite, mysql, sqlserver):
        query_builder = builder(sqlite, prefix="app_").where("users.id", 1)
        update = query_builder.compiler.compile_update(query_builder.state, "users", {"age": 2})
        delete = query_builder.compiler.compile_delete(query_builder.state, "users")

        assert update.sql == 'UPDATE "app_users" AS "users" SET "age" = ? WHERE "users"."id" = ?'
        assert delete.sql == 'DELETE FROM "app_users" AS "users" WHERE "users"."id" = ?'

        joined = builder(mysql, prefix="app_").join("posts", "posts.user_id = users.id")
        assert joined.compiler.compile_delete(joined.state, "users").sql == (
            "DELETE `users` FROM `app_users` AS `users` INNER JOIN `app_posts` AS `posts` "
            "ON posts.user_id = users.id"
        )

        # SQL Server cannot alias an UPDATE target
        plain = builder(sqlserver, prefix="app_").where("id", 1)
        assert plain.compiler.compile_update(plain.state, "users", {"age": 2}).sql == (
            'UPDATE "app_users" SET "age" = ? WHERE "id" = ?'
        )


class TestJoinsAndSubqueries:
    """Test JOIN rendering and nested queries."""

    def test_join_with_extra_conditions(self, builder, sqlite):
        query = (
            builder(sqlite)
            .table("users u")
            .left_join("posts p", "p.user_id = u.id")
            .join_where("posts p", "p.published", 1)
            .join_or_where("posts p", "p.pinned", 1)
            .where("u.active", 1)
            .to_sql()
        )

        assert query.sql == (
            'SELECT * FROM "users" AS "u" LEFT JOIN "posts" AS "p" '
            'ON p.user_id = u.id AND "p"."published" = ? OR "p"."pinned" = ? '
            'WHERE "u"."active" = ?'
        )
        assert query.params == [1, 1, 1]

    def test_join_where_needs_join(self, builder, sqlite):
        with pytest.raises(QueryBuilderError, match="matching join"):
            builder(sqlite).table("users").join_where("posts", "published", 1)

    def test_unknown_join_kind(self, builder, sqlite):
        with pytest.raises(QueryBuilderError, match="Unknown join kind"):
            builder(sqlite).join("posts", "a = b", "SIDEWAYS")

    def test_natural_join_has_no_on(self, builder, sqlite):
        query = builder(sqlite).table("a").natural_join("b").to_sql()

        assert query.sql == 'SELECT * FROM "a" NATURAL JOIN "b"'

    def test_subquery_as_join_target(self, builder, sqlite):
        parent = builder(sqlite)
        totals = (
            parent.subquery("t")
            .columns("user_id, SUM(total) AS spent")
            .where("status", "paid")
            .group_by("user_id")
            .get("orders")
        )

        query = parent.table("users u").join(totals, "t.user_id = u.id").where("u.id", 3, ">").to_sql()

        assert query.sql == (
            'SELECT * FROM "users" AS "u" INNER JOIN '
            '(SELECT "user_id", SUM(total) AS spent FROM "orders" WHERE "status" = ? GROUP BY "user_id") '
            'AS "t" ON t.user_id = u.id WHERE "u"."id" > ?'
        )
        assert query.params == ["paid", 3]

    def test_subquery_as_column(self, builder, sqlite):
        parent = builder(sqlite)
        order_count = parent.subquery("order_count").where_raw("o.user_id = u.id").get(
            "orders o", columns="COUNT(*)"
        )

        query = parent.table("users u").columns("u.id", order_count).to_sql()

        assert query.sql == (
            'SELECT "u"."id", (SELECT COUNT(*) FROM "orders" AS "o" WHERE o.user_id = u.id) '
            'AS "order_count" FROM "users" AS "u"'
        )

    def test_aliasless_subquery_cannot_be_a_table(self, builder, sqlite):
        parent = builder(sqlite)
        inner = parent.subquery().get("orders")

        with pytest.raises(QueryBuilderError, match="alias"):
            parent.table(inner).to_sql()


class TestCount:
    """Test the COUNT query used for totals."""

    def test_count_ignores_limit_and_order(self, builder, sqlite):
        query_builder = builder(sqlite).table("users").where("status", "active").order_by("id").limit(20, 40)

        query = query_builder.compiler.compile_count(query_builder.state)

        assert query.sql == 'SELECT COUNT(*) FROM "users" WHERE "status" = ?'
        assert query.params == ["active"]

    def test_grouped_count_uses_derived_table(self, builder, sqlite):
        query_builder = (
            builder(sqlite).table("users").columns("status, COUNT(*) AS n").group_by("status").limit(5)
        )

        query = query_builder.compiler.compile_count(query_builder.state)

        assert query.sql == (
            'SELECT COUNT(*) FROM (SELECT "status", COUNT(*) AS n FROM "users" GROUP BY "status") '
            'AS "count_source"'
        )


class TestOptions:
    """Test query options per dialect."""

    def test_distinct(self, builder, sqlite):
        query = builder(sqlite).table("users").set_option("distinct").columns("status").to_sql()

        assert query.sql == 'SELECT DISTINCT "status" FROM "users"'

    def test_mysql_modifier_and_lock(self, builder, mysql):
        query = (
            builder(mysql)
            .table("users")
            .set_option("SQL_NO_CACHE", "FOR UPDATE")
            .where("id", 1)
            .to_sql()
        )

        assert query.sql == "SELECT SQL_NO_CACHE * FROM `users` WHERE `id` = ? FOR UPDATE"

    def test_mysql_share_lock(self, builder, mysql):
        query = builder(mysql).table("users").set_option("FOR_SHARE").to_sql()

        assert query.sql == "SELECT * FROM `users` LOCK IN SHARE MODE"

    def test_sqlserver_lock_is_table_hint(self, builder, sqlserver):
        query = builder(sqlserver).table("users").set_option("FOR UPDATE").where("id", 1).to_sql()

        assert query.sql == 'SELECT * FROM "users" WITH (UPDLOCK, ROWLOCK) WHERE "id" = ?'

    def test_unsupported_lock(self, builder, sqlite):
        with pytest.raises(UnsupportedOperation):
            builder(sqlite).table("users").set_option("FOR UPDATE").to_sql()

    def test_unknown_option(self, builder, sqlite):
        with pytest.raises(InvalidQueryOption):
            builder(sqlite).set_option("TURBO")


class TestInsert:
    """Test INSERT rendering."""

    def _insert(self, query_builder, row, **kwargs):
        return query_builder.compiler.compile_insert(query_builder.state, "users", row, **kwargs)

    def test_sqlite_insert(self, builder, sqlite):
        query = self._insert(builder(sqlite), {"name": "ann", "created_at": now()})

        assert query.sql == 'INSERT INTO "users" ("name", "created_at") VALUES (?, CURRENT_TIMESTAMP)'
        assert query.params == ["ann"]

    def test_postgres_returning(self, builder, postgres):
        query = self._insert(builder(postgres), {"name": "ann"})

        assert query.sql == 'INSERT INTO "users" ("name") VALUES (?) RETURNING *'

    def test_sqlserver_output(self, builder, sqlserver):
        query = self._insert(builder(sqlserver), {"name": "ann"})

        assert query.sql == 'INSERT INTO "users" ("name") OUTPUT INSERTED.* VALUES (?)'

    def test_mysql_upsert(self, builder, mysql):
        query_builder = builder(mysql).on_duplicate(["name", "age"], "id")

        query = self._insert(query_builder, {"id": 1, "name": "ann", "age": 30})

        assert query.sql == (
            "INSERT INTO `users` (`id`, `name`, `age`) VALUES (?, ?, ?) "
            "ON DUPLICATE KEY UPDATE `id` = LAST_INSERT_ID(`id`), "
            "`name` = VALUES(`name`), `age` = VALUES(`age`)"
        )
        assert query.params == [1, "ann", 30]

    def test_mysql_upsert_with_explicit_values(self, builder, mysql):
        query_builder = builder(mysql).on_duplicate({"visits": increment("visits"), "note": "again"})

        query = self._insert(query_builder, {"name": "ann", "visits": 1})

        assert query.sql == (
            "INSERT INTO `users` (`name`, `visits`) VALUES (?, ?) "
            "ON DUPLICATE KEY UPDATE `visits` = `visits` + ?, `note` = ?"
        )
        assert query.params == ["ann", 1, 1, "again"]

    def test_mysql_upsert_none_binds_null(self, builder, mysql):
        """None is a value to bind, unlike a bare column name which reuses the inserted value."""
        query_builder = builder(mysql).on_duplicate({"note": None})

        query = self._insert(query_builder, {"name": "ann"})

        assert query.sql.endswith("ON DUPLICATE KEY UPDATE `note` = ?")
        assert query.params == ["ann", None]

    def test_postgres_upsert_is_unsupported(self, builder, postgres):
        query_builder = builder(postgres).on_duplicate(["name"])

        with pytest.raises(UnsupportedOperation, match="upsert"):
            self._insert(query_builder, {"name": "ann"})

    def test_insert_ignore(self, builder, sqlite, postgres):
        assert self._insert(builder(sqlite).set_option("IGNORE"), {"name": "ann"}).sql == (
            'INSERT OR IGNORE INTO "users" ("name") VALUES (?)'
        )
        assert self._insert(builder(postgres).set_option("IGNORE"), {"name": "ann"}).sql == (
            'INSERT INTO "users" ("name") VALUES (?) ON CONFLICT DO NOTHING RETURNING *'
        )

    def test_mysql_replace(self, builder, mysql):
        query = self._insert(builder(mysql), {"id": 1, "name": "ann"}, replace=True)

        assert query.sql == "REPLACE INTO `users` (`id`, `name`) VALUES (?, ?)"

    def test_multi_row_values(self, builder, sqlite):
        query_builder = builder(sqlite)
        rows = [{"name": "ann", "age": 30}, {"age": 40, "name": "bob"}]

        query = query_builder.compiler.compile_insert_multi(query_builder.state, "users", ["name", "age"], rows)

        assert query.sql == 'INSERT INTO "users" ("name", "age") VALUES (?, ?), (?, ?)'
        assert query.params == ["ann", 30, "bob", 40]

    def test_empty_row(self, builder, sqlite):
        with pytest.raises(QueryBuilderError, match="empty row"):
            self._insert(builder(sqlite), {})


class TestUpdateDelete:
    """Test UPDATE and DELETE rendering."""

    def test_update_with_increment(self, builder, sqlite):
        query_builder = builder(sqlite).where("id", 5)

        query = query_builder.compiler.compile_update(
            query_builder.state, "users", {"name": "x", "balance": increment("balance", 10)}
        )

        assert query.sql == 'UPDATE "users" SET "name" = ?, "balance" = "balance" + ? WHERE "id" = ?'
        assert query.params == ["x", 10, 5]

    def test_update_row_caps(self, builder, mysql, sqlserver, postgres):
        for dialect, expected in (
            (mysql, "UPDATE `users` SET `name` = ? WHERE `id` = ? LIMIT 5"),
            (sqlserver, 'UPDATE TOP (5) "users" SET "name" = ? WHERE "id" = ?'),
        ):
            query_builder = builder(dialect).where("id", 1)
            query = query_builder.compiler.compile_update(query_builder.state, "users", {"name": "x"}, 5)
            assert query.sql == expected

        query_builder = builder(postgres).where("id", 1)
        with pytest.raises(UnsupportedOperation):
            query_builder.compiler.compile_update(query_builder.state, "users", {"name": "x"}, 5)

    def test_delete(self, builder, sqlite):
        query_builder = builder(sqlite).where("id", [1, 2], "IN")

        query = query_builder.compiler.compile_delete(query_builder.state, "users")

        assert query.sql == 'DELETE FROM "users" WHERE "id" IN (?,?)'
        assert query.params == [1, 2]

    def test_mysql_delete_with_join(self, builder, mysql):
        query_builder = builder(mysql).join("posts p", "p.user_id = u.id").where("p.spam", 1)

        query = query_builder.compiler.compile_delete(query_builder.state, "users u", 10)

        assert query.sql == (
            "DELETE `u` FROM `users` AS `u` INNER JOIN `posts` AS `p` ON p.user_id = u.id "
            "WHERE `p`.`spam` = ? LIMIT 10"
        )

    def test_update_needs_values(self, builder, sqlite):
        query_builder = builder(sqlite).where("id", 1)

        with pytest.raises(QueryBuilderError):
            query_builder.compiler.compile_update(query_builder.state, "users", {})


class TestConditionMethods:
    """Test the OR / group / EXISTS variants of the condition surface."""

    def test_or_group_and_or_raw(self, builder, sqlite):
        query = (
            builder(sqlite)
            .table("t")
            .where("a", 1)
            .or_where_group(lambda g: g.where("b", 2).where("c", 3))
            .or_where_raw("d = ?", [4])
            .to_sql()
        )

        assert query.sql == 'SELECT * FROM "t" WHERE "a" = ? OR ("b" = ? AND "c" = ?) OR d = ?'
        assert query.params == [1, 2, 3, 4]

    def test_having_group_and_or_having(self, builder, sqlite):
        query = (
            builder(sqlite)
            .table("orders")
            .group_by("user_id")
            .having("SUM(total)", 100, ">")
            .or_having("SUM(total)", 5, "<")
            .having_group(lambda g: g.where("COUNT(*)", 2, ">").or_where("MAX(total)", 50, ">"))
            .to_sql()
        )

        assert query.sql == (
            'SELECT * FROM "orders" GROUP BY "user_id" '
            "HAVING SUM(total) > ? OR SUM(total) < ? AND (COUNT(*) > ? OR MAX(total) > ?)"
        )
        assert query.params == [100, 5, 2, 50]

    def test_where_exists_and_not_exists(self, builder, sqlite):
        parent = builder(sqlite)
        orders = parent.subquery().where_raw("o.user_id = u.id").where("o.total", 10, ">").get("orders o")
        refunds = parent.subquery().where_raw("r.user_id = u.id").get("refunds r")

        query = parent.table("users u").where_exists(orders).where_not_exists(refunds).to_sql()

        assert query.sql == (
            'SELECT * FROM "users" AS "u" '
            'WHERE EXISTS (SELECT * FROM "orders" AS "o" WHERE o.user_id = u.id AND "o"."total" > ?) '
            'AND NOT EXISTS (SELECT * FROM "refunds" AS "r" WHERE r.user_id = u.id)'
        )
        assert query.params == [10]
