"""
Operation contexts and the ambient database handle.

A Context carries an optional deadline and a cancellation flag. The engine
turns the remaining time into the pool acquisition timeout and into a
transaction-local statement_timeout, and cancel() aborts the statements
running on attached connections.

    ctx = with_timeout()          # 15s deadline
    db.insert(person, ctx=ctx)

The database handle should be passed explicitly. For code that cannot do
that, using() scopes an ambient handle readable with current():

    with using(db):
        current().select(dest, id)
"""

import threading
import time
import weakref
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, Optional

from sequel.errors import ContextCancelled, DeadlineExceeded

DEFAULT_TIMEOUT = 15.0


class Context:
    def __init__(self, deadline: Optional[float] = None, parent: Optional["Context"] = None):
        self._deadline = deadline
        self._parent = parent
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._connections: set = set()
        self._children: weakref.WeakSet = weakref.WeakSet()
        if parent is not None:
            parent._children.add(self)

    @property
    def deadline(self) -> Optional[float]:
        """Deadline on the time.monotonic() clock, or None."""
        parent = self._parent.deadline if self._parent is not None else None
        if parent is None:
            return self._deadline
        if self._deadline is None:
            return parent
        return min(parent, self._deadline)

    @property
    def cancelled(self) -> bool:
        if self._cancelled.is_set():
            return True
        return self._parent is not None and self._parent.cancelled

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None without one."""
        deadline = self.deadline
        if deadline is None:
            return None
        return max(0.0, deadline - time.monotonic())

    def check(self) -> None:
        """Raise if the context is cancelled or past its deadline."""
        if self.cancelled:
            raise ContextCancelled()
        remaining = self.remaining()
        if remaining is not None and remaining <= 0:
            raise DeadlineExceeded()

    def cancel(self) -> None:
        """Cancel the context, its children, and any in-flight statement."""
        self._cancelled.set()
        with self._lock:
            connections = list(self._connections)
        for conn in connections:
            conn.cancel_safe()
        for child in list(self._children):
            child.cancel()

    @contextmanager
    def attach(self, conn: Any) -> Iterator[Any]:
        """Register conn so cancel() can interrupt its running statement."""
        with self._lock:
            self._connections.add(conn)
        try:
            yield conn
        finally:
            with self._lock:
                self._connections.discard(conn)

    def __enter__(self) -> "Context":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.cancel()
        return False


def background() -> Context:
    """Return a context with no deadline."""
    return Context()


def with_timeout(parent: Optional[Context] = None, timeout: float = DEFAULT_TIMEOUT) -> Context:
    """Return a context that expires after timeout seconds."""
    return Context(deadline=time.monotonic() + timeout, parent=parent)


# =============================================================================
# Ambient database handle
# =============================================================================

_current_db: ContextVar[Any] = ContextVar("sequel_db", default=None)


@contextmanager
def using(db: Any) -> Iterator[Any]:
    """Make db the current handle for the duration of the block."""
    token = _current_db.set(db)
    try:
        yield db
    finally:
        _current_db.reset(token)


def current() -> Any:
    """Return the database handle set by using(), or None."""
    return _current_db.get()
