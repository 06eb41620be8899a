"""
Error taxonomy for the persistence layer.

Backend errors raised by psycopg are never wrapped: they propagate as-is so
callers can classify them (see is_unique_violation). The classes here cover
the conditions this layer detects itself.
"""

UNIQUE_VIOLATION = "23505"


class SequelError(Exception):
    """Base exception for all errors raised by sequel."""


class BindError(SequelError):
    """Raised when an argument does not provide a named query parameter."""


class NotFoundError(SequelError, LookupError):
    """Raised when an operation expected one row and found none."""

    def __init__(self, message: str = "no rows in result set"):
        super().__init__(message)


class RowCountMismatchError(SequelError):
    """Raised when a statement affected an unexpected, non-zero number of rows."""

    def __init__(self, got: int, want: int):
        self.got = got
        self.want = want
        super().__init__(f"unexpected number of rows: got {got}, want {want}")


class ScanError(SequelError):
    """Raised when a result row cannot be mapped onto a model."""


class ArrayDecodeError(SequelError, ValueError):
    """Base class for array codec failures."""


class NoTypeDescriptorError(ArrayDecodeError):
    """No array type descriptor is registered for the oid or element type."""


class UnsupportedSourceError(ArrayDecodeError):
    """The source value is neither NULL nor a textual array literal."""


class ArrayParseError(ArrayDecodeError):
    """The array literal could not be parsed."""


class ArrayTypeMismatchError(ArrayDecodeError):
    """The array type oid does not hold the requested element type."""


class TransactionStateError(SequelError):
    """Raised when a transaction is used after commit or rollback."""


class ConnectionFailedError(SequelError):
    """Raised when the database cannot be reached at construction time."""


class ContextError(SequelError):
    """Base class for operation context failures."""


class ContextCancelled(ContextError):
    def __init__(self, message: str = "context canceled"):
        super().__init__(message)


class DeadlineExceeded(ContextError, TimeoutError):
    def __init__(self, message: str = "context deadline exceeded"):
        super().__init__(message)


def is_not_found(err: BaseException | None) -> bool:
    """Return True if err reports a missing row."""
    return isinstance(err, NotFoundError)


def is_unique_violation(err: BaseException | None) -> bool:
    """
    Return True if err, or any exception in its cause chain, is a Postgres
    unique violation (SQLSTATE 23505).
    """
    seen = set()
    while err is not None and id(err) not in seen:
        seen.add(id(err))
        if getattr(err, "sqlstate", None) == UNIQUE_VIOLATION:
            return True
        err = err.__cause__ or err.__context__
    return False
