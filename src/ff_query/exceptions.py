"""
Exception hierarchy for ff-query.

Build-time errors are raised as soon as a malformed call is made, before any
SQL reaches the driver. Driver failures are never raised from terminal calls;
they are recorded on the engine (see ``QueryEngine.last_error``).
"""


class FFQueryError(Exception):
    """Base exception for all ff-query errors."""

    pass


class ConfigurationError(FFQueryError):
    """Raised when a connection profile or engine setting is unusable."""

    pass


class ConnectionFailed(FFQueryError):
    """Raised by connection classes when a connection or pool cannot be opened."""

    pass


# ==================== Build-time validation ====================


class QueryBuilderError(FFQueryError):
    """Raised when a builder call is malformed (programmer error)."""

    pass


class InvalidOperator(QueryBuilderError):
    """Raised when a condition uses an operator the builder does not know."""

    def __init__(self, operator: str):
        self.operator = operator
        super().__init__(f"Unknown comparison operator: {operator!r}")


class EmptyInList(QueryBuilderError):
    """Raised when IN / NOT IN receives an empty sequence."""

    def __init__(self, field: str, operator: str = "IN"):
        self.field = field
        self.operator = operator
        super().__init__(f"{operator} condition on {field!r} needs at least one value")


class InvalidArity(QueryBuilderError):
    """Raised when BETWEEN / NOT BETWEEN does not receive exactly two values."""

    def __init__(self, field: str, operator: str, received: int):
        self.field = field
        self.operator = operator
        self.received = received
        super().__init__(
            f"{operator} condition on {field!r} needs exactly 2 values, got {received}"
        )


class ColumnMismatch(QueryBuilderError):
    """Raised when a multi-row insert row does not match the column set."""

    def __init__(self, row_index: int, expected: list, received: list):
        self.row_index = row_index
        self.expected = expected
        self.received = received
        super().__init__(
            f"Row {row_index} has columns {sorted(received)}, expected {sorted(expected)}"
        )


class InvalidPage(QueryBuilderError):
    """Raised when a page number or page size is not a positive integer."""

    def __init__(self, page, page_size=None):
        self.page = page
        self.page_size = page_size
        if page_size is not None and (not isinstance(page_size, int) or page_size <= 0):
            message = f"Page size must be a positive integer, got {page_size!r}"
        else:
            message = f"Page numbers start at 1, got {page}"
        super().__init__(message)


class InvalidOrderDirection(QueryBuilderError):
    """Raised when ORDER BY receives something other than ASC or DESC."""

    def __init__(self, direction: str):
        self.direction = direction
        super().__init__(f"Order direction must be ASC or DESC, got {direction!r}")


class InvalidQueryOption(QueryBuilderError):
    """Raised when set_option receives an unknown query option."""

    def __init__(self, option):
        self.option = option
        super().__init__(f"Unknown query option: {option!r}")


class UnscopedMutation(QueryBuilderError):
    """Raised when UPDATE or DELETE has no WHERE condition and was not opted in."""

    def __init__(self, statement: str, table: str):
        self.statement = statement
        self.table = table
        super().__init__(
            f"{statement} on {table!r} has no WHERE condition; "
            "call allow_unscoped() to affect every row"
        )


class ParameterCountMismatch(QueryBuilderError):
    """Raised when the placeholder count differs from the bound value count."""

    def __init__(self, placeholders: int, values: int):
        self.placeholders = placeholders
        self.values = values
        super().__init__(
            f"Statement has {placeholders} placeholder(s) but {values} bound value(s)"
        )


class UnsupportedOperation(FFQueryError):
    """Raised when the active dialect cannot express the requested SQL."""

    def __init__(self, dialect: str, feature: str):
        self.dialect = dialect
        self.feature = feature
        super().__init__(f"{feature} is not supported by the {dialect} dialect")


# ==================== Transactions ====================


class TransactionError(FFQueryError):
    """Base exception for illegal transaction state transitions."""

    pass


class NestedTransaction(TransactionError):
    """Raised when begin() is called while a transaction is already active."""

    def __init__(self):
        super().__init__("A transaction is already active; nesting is not supported")


class NoActiveTransaction(TransactionError):
    """Raised when commit() or rollback() is called with no active transaction."""

    def __init__(self, action: str):
        self.action = action
        super().__init__(f"Cannot {action}: no active transaction")


# ==================== Resources ====================


class StreamError(FFQueryError):
    """Base exception for generator-mode result streams."""

    pass


class StreamClosed(StreamError):
    """Raised when iterating a stream that was closed or already consumed."""

    def __init__(self, reason: str = "closed"):
        self.reason = reason
        super().__init__(f"Row stream is {reason} and cannot be iterated again")


class StreamInProgress(StreamError):
    """Raised when a statement is issued while a row stream still holds the cursor."""

    def __init__(self):
        super().__init__(
            "A row stream is still open on this connection; drain or close it first"
        )
