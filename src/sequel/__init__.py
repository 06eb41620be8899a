"""
Sequel

Persistence layer mapping models to Postgres rows: typed CRUD with soft and
hard deletes, transactional batch inserts, placeholder rebinding and typed
array columns.
"""

from sequel.array import Array, ArrayType, ArrayTypeRegistry, NetworkPrefix, array_scan
from sequel.bind import BindType, bind_named, bind_type, rebind, register_bind_type
from sequel.clock import Clock, MockClock, SystemClock
from sequel.context import Context, background, current, using, with_timeout
from sequel.db import DB, MAX_OPEN_CONNECTIONS, configure_connection
from sequel.errors import (
    ArrayDecodeError,
    ArrayParseError,
    ArrayTypeMismatchError,
    BindError,
    ConnectionFailedError,
    ContextCancelled,
    DeadlineExceeded,
    NoTypeDescriptorError,
    NotFoundError,
    RowCountMismatchError,
    ScanError,
    SequelError,
    TransactionStateError,
    UnsupportedSourceError,
    is_not_found,
    is_unique_violation,
)
from sequel.model import (
    Base,
    ExecInsertable,
    HardDeletable,
    Model,
    Queries,
    QueryBuilder,
    hard_delete_query,
    queries,
)
from sequel.rows import rows_affected
from sequel.transaction import Transaction

__all__ = [
    "Array",
    "ArrayDecodeError",
    "ArrayParseError",
    "ArrayType",
    "ArrayTypeMismatchError",
    "ArrayTypeRegistry",
    "Base",
    "BindError",
    "BindType",
    "Clock",
    "ConnectionFailedError",
    "Context",
    "ContextCancelled",
    "DB",
    "DeadlineExceeded",
    "ExecInsertable",
    "HardDeletable",
    "MAX_OPEN_CONNECTIONS",
    "MockClock",
    "Model",
    "NetworkPrefix",
    "NoTypeDescriptorError",
    "NotFoundError",
    "Queries",
    "QueryBuilder",
    "RowCountMismatchError",
    "ScanError",
    "SequelError",
    "SystemClock",
    "Transaction",
    "TransactionStateError",
    "UnsupportedSourceError",
    "array_scan",
    "background",
    "bind_named",
    "bind_type",
    "configure_connection",
    "hard_delete_query",
    "current",
    "is_not_found",
    "is_unique_violation",
    "queries",
    "rebind",
    "register_bind_type",
    "rows_affected",
    "using",
    "with_timeout",
]
