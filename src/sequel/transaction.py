"""
Transactions.

A Transaction owns one pooled connection from DB.begin() until commit() or
rollback() and must be driven by a single caller. Functions registered with
post_commit() run, in order, only after a successful commit.

Usage:
    with db.begin() as tx:
        tx.insert(person)
        tx.post_commit(lambda: notify(person.id))
"""

import logging
from contextlib import ExitStack
from typing import Any, Callable, Optional, Sequence, TypeVar

from sequel.context import Context
from sequel.errors import TransactionStateError
from sequel.executor import Executor
from sequel.model import HardDeletable, Model

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=Model)

ACTIVE = "active"
COMMITTED = "committed"
ROLLED_BACK = "rolled back"
FAILED = "failed"


class Transaction:
    def __init__(self, pool: Any, conn: Any, executor: Executor, ctx: Optional[Context] = None):
        self._pool = pool
        self._conn = conn
        self._executor = executor
        self._resources = ExitStack()
        self._post_commit: list[Callable[[], Any]] = []
        self.state = ACTIVE
        if ctx is not None:
            self._resources.enter_context(ctx.attach(conn))

    def _ensure_active(self) -> None:
        if self.state != ACTIVE:
            raise TransactionStateError(f"transaction has already been {self.state}")

    @property
    def executor(self) -> Executor:
        self._ensure_active()
        return self._executor

    def _release(self, state: str) -> None:
        self.state = state
        self._resources.close()
        self._pool.putconn(self._conn)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def commit(self) -> None:
        """
        Commit the transaction, then run the post-commit functions.

        If the commit fails the error is raised and no function runs.
        Errors raised by post-commit functions are logged, not raised.
        """
        self._ensure_active()
        try:
            self._conn.commit()
        except Exception:
            self._release(FAILED)
            raise
        self._release(COMMITTED)
        logger.debug("transaction committed")

        for fn in self._post_commit:
            try:
                fn()
            except Exception:
                logger.exception("post-commit function %r failed", fn)

    def rollback(self) -> None:
        """Abort the transaction. Post-commit functions never run."""
        self._ensure_active()
        try:
            self._conn.rollback()
        finally:
            self._release(ROLLED_BACK)
        logger.debug("transaction rolled back")

    def post_commit(self, fn: Callable[[], Any]) -> None:
        """Register a function to be called after a successful commit."""
        self._ensure_active()
        self._post_commit.append(fn)

    def __enter__(self) -> "Transaction":
        return self

    def __exit__(self, exc_type, exc, tb):
        if self.state != ACTIVE:
            return False
        if exc_type is not None:
            self.rollback()
        else:
            self.commit()
        return False

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def rebind(self, query: str) -> str:
        return self._executor.rebind(query)

    def exec(self, query: str, *args: Any) -> int:
        return self.executor.exec(query, *args)

    def query(self, query: str, *args: Any) -> list[dict[str, Any]]:
        return self.executor.query(query, *args)

    def query_row(self, query: str, *args: Any) -> Optional[dict[str, Any]]:
        return self.executor.query_row(query, *args)

    def rebind_exec(self, query: str, *args: Any) -> int:
        return self.executor.rebind_exec(query, *args)

    def rebind_query(self, query: str, *args: Any) -> list[dict[str, Any]]:
        return self.executor.rebind_query(query, *args)

    def rebind_query_row(self, query: str, *args: Any) -> Optional[dict[str, Any]]:
        return self.executor.rebind_query_row(query, *args)

    def named_exec(self, query: str, arg: Any) -> int:
        return self.executor.named_exec(query, arg)

    def named_query(self, query: str, arg: Any) -> list[dict[str, Any]]:
        return self.executor.named_query(query, arg)

    def get(self, dest: Model, query: str, *args: Any) -> None:
        self.executor.get(dest, query, *args)

    def get_all(self, model_cls: type[M], query: str, *args: Any) -> list[M]:
        return self.executor.get_all(model_cls, query, *args)

    def select(self, dest: Model, id: str) -> None:
        self.executor.select(dest, id)

    def insert(self, entity: Model) -> None:
        self.executor.insert(entity)

    def insert_batch(self, entities: Sequence[Model]) -> None:
        self.executor.insert_batch(entities)

    def update(self, entity: Model) -> None:
        self.executor.update(entity)

    def delete(self, entity: Model) -> None:
        self.executor.delete(entity)

    def hard_delete(self, entity: HardDeletable) -> None:
        self.executor.hard_delete(entity)
