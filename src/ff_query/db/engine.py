"""
Query engine: terminal calls and statement execution.

QueryEngine adds execution to QueryBuilder. Every terminal call renders the
pending state, runs it through the connection source and resets the state
on the way out, whether the call succeeded, failed or raised.

Driver failures are recorded on ``last_error`` and reported through a
failure sentinel (None, ``[]`` or False); only programmer errors raise.
"""

import json
import logging
import math
import time
from contextlib import contextmanager
from copy import copy as shallow_copy
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Union

from ..config import ConnectionProfile, EngineSettings
from ..exceptions import (
    ColumnMismatch,
    ConfigurationError,
    ConnectionFailed,
    InvalidPage,
    NestedTransaction,
    QueryBuilderError,
    StreamInProgress,
    UnscopedMutation,
)
from .binder import check_placeholders
from .builder import QueryBuilder
from .compiler import CompiledQuery
from .connections import SQL, ExistingConnection, connection_for
from .dialects import detect_dialect, get_dialect
from .expressions import raw_function
from .results import FetchMode, LastError, PaginationResult, ReturnType, RowStream, TraceEntry
from .state import QueryState
from .transactions import TransactionManager, TransactionState

# Returned by _run when the driver reported an error
_FAILED = object()

# SQLSTATE for "client unable to establish connection"
_CONNECT_FAILED = "08001"


class _Session:
    """Connection source plus the state every fork of an engine shares."""

    def __init__(self, source: SQL):
        self.source = source
        self.transactions = TransactionManager()
        self.stream: Optional[RowStream] = None
        self.stream_connection: Any = None
        self.deadline: Optional[float] = None


class QueryEngine(QueryBuilder):
    """
    Fluent query builder bound to a database connection.

    Construct from a profile, a configuration mapping, discrete fields or an
    open connection:

        QueryEngine(ConnectionProfile(dialect="sqlite", database=":memory:"))
        QueryEngine({"dialect": "mysql", "host": "db", "username": "app", "db": "shop"})
        QueryEngine(dialect="postgres", host="db", user="app", database="shop")
        QueryEngine(connection=sqlite3.connect("app.db"))

    Nothing connects until the first statement runs.

    Args:
        profile: ConnectionProfile or configuration mapping
        connection: Open DB-API connection or an SQL connection holder
        settings: EngineSettings; defaults are read from FF_QUERY_* variables
        pooled: Use the backend's pool class instead of a direct connection
        logger: Optional logger instance
        **fields: Discrete profile fields when no profile is given
    """

    def __init__(
        self,
        profile: Union[ConnectionProfile, Mapping[str, Any], None] = None,
        connection: Any = None,
        *,
        settings: Optional[EngineSettings] = None,
        pooled: bool = False,
        logger: Optional[logging.Logger] = None,
        **fields: Any,
    ):
        logger = logger or logging.getLogger(__name__)

        if isinstance(profile, Mapping):
            profile = ConnectionProfile.from_mapping(profile)
        elif profile is None and fields:
            profile = ConnectionProfile.from_mapping(fields)

        if connection is not None:
            if isinstance(connection, SQL):
                source = connection
                profile = profile or connection.profile
            else:
                source = ExistingConnection(connection=connection, logger=logger)
            dialect = get_dialect(profile.dialect) if profile else detect_dialect(source.connection)
        elif profile is not None:
            source = connection_for(profile, pooled=pooled, logger=logger)
            dialect = get_dialect(profile.dialect)
        else:
            raise ConfigurationError(
                "QueryEngine needs a connection profile, a configuration mapping or an open connection"
            )

        super().__init__(dialect, prefix=profile.prefix if profile else "", settings=settings, logger=logger)
        self.profile = profile
        self._session = _Session(source)
        self.fetch_mode = FetchMode(self.settings.fetch_mode)
        self._tracing = self.settings.trace
        self.trace_log: List[TraceEntry] = []
        self._clear_results()

    def _clear_results(self) -> None:
        self.last_query: Optional[str] = None
        self.last_error: Optional[LastError] = None
        self.row_count = 0
        self.insert_id: Any = None
        self.total_count = 0
        self.total_pages = 0

    # ==================== Connection ====================

    @property
    def source(self) -> SQL:
        return self._session.source

    def connect(self) -> "QueryEngine":
        """Open the connection (or pool) now instead of on first use."""
        self._session.source.connect()
        return self

    def disconnect(self) -> None:
        """
        Close any open stream and the connection source.

        An active transaction is rolled back first.
        """
        session = self._session
        if session.stream is not None:
            session.stream.close()
        if session.transactions.active:
            self.logger.warning("Disconnecting with an active transaction; rolling back")
            self._abort_transaction()
        session.source.close_connection()

    def ping(self) -> bool:
        """Run a trivial statement; True if the server answered."""
        return self._run(CompiledQuery("SELECT 1", []), self._fetch_scalar) is not _FAILED

    def fork(self) -> "QueryEngine":
        """
        Derive an engine with fresh query state on the same connection source.

        Forks share the connection, transaction and open-stream bookkeeping,
        never pending conditions.
        """
        clone = shallow_copy(self)
        clone._state = QueryState()
        clone.trace_log = []
        clone._clear_results()
        return clone

    copy = fork

    def set_fetch_mode(self, mode: Union[str, FetchMode]) -> "QueryEngine":
        """Shape rows as dicts, tuples or both (dict with column and index keys)."""
        self.fetch_mode = FetchMode(mode)
        return self

    def set_trace(self, enabled: bool = True) -> "QueryEngine":
        """Record every statement's SQL, bound value count and duration in trace_log."""
        self._tracing = enabled
        if enabled:
            self.trace_log = []
        return self

    @property
    def last_error_code(self) -> Any:
        return self.last_error.driver_code if self.last_error else None

    @property
    def in_transaction(self) -> bool:
        return self._session.transactions.active

    def __enter__(self) -> "QueryEngine":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.disconnect()

    # ==================== Execution ====================

    @contextmanager
    def _terminal_call(self) -> Iterator[QueryState]:
        """Yield the pending state; replace it with a fresh one however the call ends."""
        try:
            yield self._state
        finally:
            self.reset()

    def _acquire(self):
        """Check a connection out of the source; None (with last_error set) if it cannot connect."""
        try:
            return self._session.source.acquire()
        except Exception as e:
            if isinstance(e, ConnectionFailed):
                driver_code = None
            elif self.dialect.is_driver_error(e):
                driver_code = self.dialect.describe_error(e).driver_code
            else:
                raise
            self._record_error(
                LastError(sql_state=_CONNECT_FAILED, driver_code=driver_code, message=f"Connection failed: {e}")
            )
            return None

    def _checkout(self):
        session = self._session
        if session.transactions.active:
            connection = session.transactions.connection
        else:
            connection = self._acquire()
            if connection is None:
                return None
        stream = session.stream
        if stream is not None and not stream.closed and session.stream_connection is connection:
            raise StreamInProgress()
        return connection

    def _checkin(self, connection) -> None:
        if connection is not self._session.transactions.connection:
            self._session.source.release(connection)

    def _apply_deadline(self, connection) -> bool:
        """Push the remaining deadline to the driver; False if it has already passed."""
        deadline = self._session.deadline
        if deadline is None:
            return True
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return False
        self.dialect.apply_timeout(connection, remaining)
        return True

    def _clear_deadline(self, connection) -> None:
        try:
            self.dialect.apply_timeout(connection, None)
        except Exception as e:
            if not self.dialect.is_driver_error(e):
                raise
            self.logger.warning(f"Failed to clear statement timeout: {e}")

    def _quiet_rollback(self, connection) -> None:
        try:
            connection.rollback()
        except Exception as e:
            if not self.dialect.is_driver_error(e):
                raise
            self.logger.error(f"Rollback failed: {e}", exc_info=True)

    def _abort_transaction(self) -> None:
        transactions = self._session.transactions
        connection = transactions.connection
        self._quiet_rollback(connection)
        transactions.finish(TransactionState.ROLLED_BACK)
        self._checkin(connection)

    def _record_error(self, error: LastError) -> None:
        self.last_error = error
        self.logger.error(
            f"Query failed: {error}",
            extra={"sql": self.last_query, "sql_state": error.sql_state, "driver_code": error.driver_code},
        )

    def _trace(self, sql: str, param_count: int, duration: float, succeeded: bool) -> None:
        if not self._tracing:
            return
        self.trace_log.append(TraceEntry(sql, param_count, duration, succeeded))
        self.logger.debug(f"[{duration * 1000:.2f} ms] {sql}", extra={"param_count": param_count})

    def _run(self, query: CompiledQuery, consume: Optional[Callable[[Any], Any]], stream: bool = False):
        """
        Execute one statement.

        Args:
            query: Rendered SQL with ``?`` placeholders and its values
            consume: Reads the result from the cursor before it is closed
            stream: Hand the open cursor to a RowStream instead of consuming it

        Returns:
            Whatever ``consume`` returned (or the RowStream), or ``_FAILED``

        Raises:
            ParameterCountMismatch: If placeholders and values differ in number
            StreamInProgress: If a RowStream holds the connection
        """
        sql, params = query
        check_placeholders(sql, len(params), self.dialect.backslash_escapes)

        self.last_query = sql
        self.last_error = None
        self.row_count = 0

        transactions = self._session.transactions
        connection = None
        cursor = None
        deadline_applied = False
        timed_out = False
        succeeded = False
        started = time.monotonic()
        try:
            connection = self._checkout()
            if connection is None:
                return _FAILED
            if not self._apply_deadline(connection):
                timed_out = True
                self._record_error(
                    LastError(sql_state="HYT00", driver_code="timeout", message="Deadline expired before execution")
                )
                return _FAILED
            deadline_applied = self._session.deadline is not None

            cursor = connection.cursor()
            if params:
                cursor.execute(self.dialect.convert_placeholders(sql), tuple(params))
            else:
                cursor.execute(sql)

            if stream:
                result = self._open_stream(cursor, connection, deadline_applied)
                cursor = connection = None
            else:
                result = consume(cursor)
                if not transactions.active:
                    connection.commit()
            succeeded = True
            return result
        except Exception as e:
            if not self.dialect.is_driver_error(e):
                raise
            error = self.dialect.describe_error(e)
            if self.dialect.is_timeout_error(e):
                timed_out = True
                error = LastError(sql_state=error.sql_state, driver_code="timeout", message=error.message)
            self._record_error(error)
            return _FAILED
        finally:
            if cursor is not None:
                cursor.close()
            if connection is not None:
                if deadline_applied:
                    self._clear_deadline(connection)
                if timed_out and transactions.active:
                    self.logger.warning("Statement timed out; rolling back the active transaction")
                    self._abort_transaction()
                else:
                    if not succeeded and not transactions.active:
                        self._quiet_rollback(connection)
                    self._checkin(connection)
            self._trace(sql, len(params), time.monotonic() - started, succeeded)

    def _open_stream(self, cursor, connection, deadline_applied: bool) -> RowStream:
        session = self._session
        shape = self._row_shaper(cursor)

        def release():
            session.stream = None
            session.stream_connection = None
            if deadline_applied:
                self._clear_deadline(connection)
            if not session.transactions.active:
                self._quiet_rollback(connection)
            self._checkin(connection)

        stream = RowStream(cursor, shape, on_close=release)
        session.stream = stream
        session.stream_connection = connection
        return stream

    # ==================== Result shaping ====================

    def _row_shaper(self, cursor) -> Callable[[Sequence[Any]], Any]:
        names = [column[0] for column in cursor.description or ()]
        mode = self.fetch_mode

        if mode is FetchMode.TUPLE:
            return tuple
        if mode is FetchMode.BOTH:
            def shape(row):
                shaped: Dict[Any, Any] = dict(enumerate(row))
                shaped.update(zip(names, row))
                return shaped

            return shape
        return lambda row: dict(zip(names, row))

    def _fetch_rows(self, cursor) -> List[Any]:
        if cursor.description is None:
            self.row_count = max(cursor.rowcount, 0)
            return []
        shape = self._row_shaper(cursor)
        rows = [shape(row) for row in cursor.fetchall()]
        self.row_count = len(rows)
        return rows

    def _fetch_values(self, cursor) -> List[Any]:
        values = [row[0] for row in cursor.fetchall()]
        self.row_count = len(values)
        return values

    def _fetch_scalar(self, cursor) -> Any:
        row = cursor.fetchone()
        return row[0] if row else None

    def _fetch_affected(self, cursor) -> int:
        self.row_count = max(cursor.rowcount, 0)
        return self.row_count

    def _fetch_insert_id(self, cursor) -> Any:
        self.row_count = max(cursor.rowcount, 0)
        if self.dialect.insert_id_strategy == "cursor":
            insert_id = cursor.lastrowid
        else:
            # RETURNING / OUTPUT: every inserted row comes back
            rows = cursor.fetchall()
            insert_id = self._id_from_row(cursor, rows[0]) if rows else None
            self.row_count = max(self.row_count, len(rows))
        self.insert_id = insert_id
        return insert_id

    def _id_from_row(self, cursor, row) -> Any:
        names = [column[0] for column in cursor.description or ()]
        id_column = self.settings.id_column
        if id_column in names:
            return row[names.index(id_column)]
        return row[0]

    def _present(self, rows: List[Any], state: QueryState) -> Any:
        if state.map_by:
            rows = {row[state.map_by]: row for row in rows}
        if state.return_type is ReturnType.JSON:
            return json.dumps(rows, default=str)
        return rows

    def _empty(self, state: QueryState) -> Any:
        empty: Any = {} if state.map_by else []
        if state.return_type is ReturnType.JSON:
            return json.dumps(empty)
        return empty

    @staticmethod
    def _scalar_or_list(values: List[Any]) -> Any:
        if not values:
            return None
        if len(values) == 1:
            return values[0]
        return values

    # ==================== Terminal calls: read ====================

    def _check_map_by(self, state: QueryState) -> None:
        if state.map_by and self.fetch_mode is FetchMode.TUPLE:
            raise QueryBuilderError("map_by needs dict rows; switch the fetch mode to dict or both")

    def _count_matching(self, state: QueryState) -> Any:
        total = self._run(self.compiler.compile_count(state), self._fetch_scalar)
        return _FAILED if total is _FAILED else int(total or 0)

    def select(self, table: Any = None, limit: Any = None, columns: Any = "*"):
        """
        Run a SELECT.

        Args:
            table: Table to select from (may also be staged with ``table()``)
            limit: Row cap, or an ``[offset, count]`` pair
            columns: Column list or comma-separated string

        Returns:
            List of rows; a dict keyed by the map_by column; a JSON string
            with ``as_json()``; a RowStream in generator mode. ``[]`` (or the
            empty equivalent) on failure.
        """
        with self._terminal_call() as state:
            self._stage_select(table, limit, columns)
            self._check_map_by(state)
            query = self.compiler.compile_select(state)

            if state.with_total_count:
                total = self._count_matching(state)
                if total is _FAILED:
                    return self._empty(state)
                self.total_count = total
                self.total_pages = math.ceil(total / state.limit) if state.limit else int(total > 0)

            if state.generator:
                stream = self._run(query, None, stream=True)
                return [] if stream is _FAILED else stream

            rows = self._run(query, self._fetch_rows)
            if rows is _FAILED:
                return self._empty(state)
            return self._present(rows, state)

    def select_one(self, table: Any = None, columns: Any = "*"):
        """Run a SELECT capped at one row; returns the row or None."""
        with self._terminal_call() as state:
            self._stage_select(table, 1, columns)
            rows = self._run(self.compiler.compile_select(state), self._fetch_rows)
            if rows is _FAILED or not rows:
                return None
            if state.return_type is ReturnType.JSON:
                return json.dumps(rows[0], default=str)
            return rows[0]

    def select_value(self, table: Any, column: Any, limit: Any = None):
        """
        Select a single column.

        Returns:
            None when no row matches, the bare value when exactly one row
            matches and a list of values otherwise.
        """
        with self._terminal_call() as state:
            self._stage_select(table, limit, column)
            values = self._run(self.compiler.compile_select(state), self._fetch_values)
            if values is _FAILED:
                return None
            return self._scalar_or_list(values)

    def has(self, table: Any = None) -> bool:
        """True if at least one row matches the staged conditions."""
        with self._terminal_call() as state:
            self._stage_select(table, 1, None)
            state.columns = [raw_function("1")]
            found = self._run(self.compiler.compile_select(state), self._fetch_scalar)
            return found is not _FAILED and found is not None

    def count_rows(self, table: Any = None) -> Optional[int]:
        """COUNT(*) of the rows matching the staged conditions; None on failure."""
        with self._terminal_call() as state:
            self._stage_select(table, None, None)
            total = self._count_matching(state)
            return None if total is _FAILED else total

    def paginate(
        self,
        table: Any,
        page: int,
        page_size: Optional[int] = None,
        columns: Any = "*",
        total_count: Optional[int] = None,
    ) -> PaginationResult:
        """
        Fetch one 1-based page plus the total number of matching rows.

        The total is counted over the same joins and conditions without
        LIMIT, unless ``total_count`` is supplied.

        Raises:
            InvalidPage: If page or page size is not a positive integer
        """
        with self._terminal_call() as state:
            page_size = self.settings.page_limit if page_size is None else page_size
            for value in (page, page_size):
                if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                    raise InvalidPage(page, page_size)

            self._stage_select(table, None, columns)
            state.limit = page_size
            state.offset = (page - 1) * page_size

            if total_count is None:
                total_count = self._count_matching(state)
                if total_count is _FAILED:
                    return PaginationResult(rows=[], total_count=0, page=page, page_size=page_size)

            rows = self._run(self.compiler.compile_select(state), self._fetch_rows)
            result = PaginationResult(
                rows=[] if rows is _FAILED else rows,
                total_count=total_count,
                page=page,
                page_size=page_size,
            )
            self.total_count = result.total_count
            self.total_pages = result.total_pages
            return result

    # ==================== Terminal calls: write ====================

    def _insert_one(self, state: QueryState, table: str, row: Mapping[str, Any], replace: bool = False) -> Any:
        query = self.compiler.compile_insert(state, table, row, replace=replace)
        insert_id = self._run(query, self._fetch_insert_id)
        if insert_id is _FAILED:
            self.insert_id = None
            return None
        return insert_id

    def insert(self, table: str, data: Union[Mapping[str, Any], Sequence[Mapping[str, Any]]]):
        """
        Insert one row, or several rows with one statement each.

        After ``on_duplicate()`` the insert becomes an upsert.

        Returns:
            The generated id (None on failure) for a mapping; a list of ids
            in input order for a sequence, with None for rows that failed.
        """
        with self._terminal_call() as state:
            if isinstance(data, Mapping):
                return self._insert_one(state, table, data)
            rows = list(data)
            for index, row in enumerate(rows):
                if not isinstance(row, Mapping):
                    raise QueryBuilderError(f"Row {index} passed to insert() is not a mapping")
            return [self._insert_one(state, table, row) for row in rows]

    def replace(self, table: str, data: Mapping[str, Any]):
        """REPLACE-style insert; returns the generated id or None."""
        with self._terminal_call() as state:
            return self._insert_one(state, table, data, replace=True)

    def insert_multi(
        self, table: str, rows: Sequence[Mapping[str, Any]], columns: Optional[Sequence[str]] = None
    ) -> bool:
        """
        Insert all rows with a single multi-VALUES statement.

        Columns come from ``columns`` or the first row's keys; every row must
        supply exactly that column set.

        Raises:
            ColumnMismatch: If a row's keys differ from the column set
        """
        with self._terminal_call() as state:
            rows = list(rows)
            if not rows:
                raise QueryBuilderError(f"insert_multi into {table!r} needs at least one row")
            column_list = list(columns) if columns else list(rows[0])
            expected = set(column_list)
            for index, row in enumerate(rows):
                if set(row) != expected:
                    raise ColumnMismatch(index, column_list, list(row))

            query = self.compiler.compile_insert_multi(state, table, column_list, rows)
            return self._run(query, self._fetch_insert_id) is not _FAILED

    def _check_scope(self, state: QueryState, statement: str, table: str) -> None:
        if state.where or state.allow_unscoped:
            return
        policy = self.settings.unscoped_mutations
        if policy == "refuse":
            raise UnscopedMutation(statement, table)
        if policy == "warn":
            self.logger.warning(
                f"{statement} on {table} has no WHERE conditions and affects every row",
                extra={"table": table},
            )

    def update(self, table: str, values: Mapping[str, Any], limit: Optional[int] = None) -> bool:
        """
        Update rows matching the staged conditions.

        Without WHERE conditions the ``unscoped_mutations`` setting decides
        whether to refuse, warn or proceed, unless ``allow_unscoped()`` was called.

        Returns:
            True on success (``row_count`` holds the affected rows), False on failure
        """
        with self._terminal_call() as state:
            self._check_scope(state, "UPDATE", table)
            query = self.compiler.compile_update(state, table, values, limit)
            return self._run(query, self._fetch_affected) is not _FAILED

    def delete(self, table: str, limit: Optional[int] = None) -> bool:
        """Delete rows matching the staged conditions; same scoping rules as update()."""
        with self._terminal_call() as state:
            self._check_scope(state, "DELETE", table)
            query = self.compiler.compile_delete(state, table, limit)
            return self._run(query, self._fetch_affected) is not _FAILED

    # ==================== Terminal calls: raw ====================

    def raw_query(self, sql: str, params: Optional[Sequence[Any]] = None):
        """
        Run literal SQL with ``?`` placeholders.

        Returns rows for statements that produce a result set, ``[]``
        otherwise (``row_count`` holds affected rows). Honors generator mode.
        """
        with self._terminal_call() as state:
            query = self.compiler.compile_raw(sql, params)
            if state.generator:
                stream = self._run(query, None, stream=True)
                return [] if stream is _FAILED else stream
            rows = self._run(query, self._fetch_rows)
            return [] if rows is _FAILED else rows

    def raw_query_one(self, sql: str, params: Optional[Sequence[Any]] = None):
        with self._terminal_call():
            rows = self._run(self.compiler.compile_raw(sql, params), self._fetch_rows)
            if rows is _FAILED or not rows:
                return None
            return rows[0]

    def raw_query_value(self, sql: str, params: Optional[Sequence[Any]] = None):
        """First column of literal SQL; None, a bare value or a list like select_value()."""
        with self._terminal_call():
            values = self._run(self.compiler.compile_raw(sql, params), self._fetch_values)
            if values is _FAILED:
                return None
            return self._scalar_or_list(values)

    def table_exists(self, table: str) -> bool:
        """Whether the (prefixed) table exists."""
        with self._terminal_call():
            name = table if "." in table else f"{self.prefix}{table}"
            sql, params = self.dialect.table_exists_sql(name)
            found = self._run(CompiledQuery(sql, list(params)), self._fetch_scalar)
            return found is not _FAILED and bool(found)

    # ==================== Transactions ====================

    def begin(self) -> "QueryEngine":
        """
        Start a transaction; pooled sources pin one connection until it ends.

        If no connection can be opened the failure is recorded on
        ``last_error`` and the engine stays idle.

        Raises:
            NestedTransaction: If a transaction is already active
        """
        transactions = self._session.transactions
        if transactions.active:
            raise NestedTransaction()
        connection = self._checkout()
        if connection is None:
            return self
        transactions.begin(connection)
        self.logger.debug("Transaction started")
        return self

    def _end_transaction(self, action: str) -> bool:
        transactions = self._session.transactions
        connection = transactions.ensure_active(action)
        outcome = TransactionState.COMMITTED if action == "commit" else TransactionState.ROLLED_BACK
        try:
            getattr(connection, action)()
            self.logger.debug(f"Transaction {outcome.value}")
            return True
        except Exception as e:
            if not self.dialect.is_driver_error(e):
                raise
            self._record_error(self.dialect.describe_error(e))
            if action == "commit":
                self._quiet_rollback(connection)
                outcome = TransactionState.ROLLED_BACK
            return False
        finally:
            transactions.finish(outcome)
            self._checkin(connection)

    def commit(self) -> bool:
        """
        Commit the active transaction.

        Raises:
            NoActiveTransaction: If no transaction is active
        """
        return self._end_transaction("commit")

    def rollback(self) -> bool:
        """
        Roll back the active transaction.

        Raises:
            NoActiveTransaction: If no transaction is active
        """
        return self._end_transaction("rollback")

    @contextmanager
    def transaction(self) -> Iterator["QueryEngine"]:
        """
        Commit when the block succeeds, roll back if it raises.

        Raises:
            ConnectionFailed: If the transaction could not be started
        """
        self.begin()
        if not self._session.transactions.active:
            raise ConnectionFailed(self.last_error.message if self.last_error else "Could not start a transaction")
        try:
            yield self
        except BaseException:
            if self._session.transactions.active:
                self.rollback()
            raise
        else:
            if self._session.transactions.active:
                self.commit()

    @contextmanager
    def deadline(self, seconds: float) -> Iterator["QueryEngine"]:
        """
        Bound every statement in the block by a shared deadline.

        The remaining time is pushed to the driver before each statement. A
        timeout is recorded as a ``timeout`` LastError and rolls back any
        active transaction.
        """
        session = self._session
        previous = session.deadline
        candidate = time.monotonic() + seconds
        session.deadline = candidate if previous is None else min(previous, candidate)
        try:
            yield self
        finally:
            session.deadline = previous

    def __repr__(self) -> str:
        return f"QueryEngine(dialect={self.dialect.name!r}, source={self.source.description!r})"
