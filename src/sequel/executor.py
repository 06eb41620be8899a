"""
Model operations bound to one connection.

DB and Transaction both delegate to an Executor: DB builds one for every
pooled connection it borrows, a Transaction keeps one for its whole life.
Every write follows the same stages:

    stamp timestamps -> bind parameters -> rebind -> execute -> verify -> mutate

and any failing stage raises before the entity is mutated further.
"""

import logging
import math
from datetime import datetime
from typing import Any, Optional, Sequence, TypeVar

from psycopg.rows import dict_row

from sequel.bind import BindType, bind_named, rebind
from sequel.clock import Clock
from sequel.errors import NotFoundError
from sequel.model import ExecInsertable, HardDeletable, Model, hard_delete_query
from sequel.rows import rows_affected

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=Model)


def _params(args: Sequence[Any]) -> Optional[Sequence[Any]]:
    return list(args) if args else None


def column_types(cursor: Any) -> dict[str, int]:
    """Map the result column names of cursor to their type oids."""
    if not cursor.description:
        return {}
    return {c.name: c.type_code for c in cursor.description}


class Executor:
    def __init__(self, conn: Any, clock: Clock, bind_type: BindType, rebind_model: bool = False):
        self.conn = conn
        self.clock = clock
        self.bind_type = bind_type
        self.rebind_model = rebind_model

    # -------------------------------------------------------------------------
    # Placeholders
    # -------------------------------------------------------------------------

    def rebind(self, query: str) -> str:
        return rebind(query, self.bind_type)

    def _rebind_model(self, query: str) -> str:
        if self.rebind_model:
            return self.rebind(query)
        return query

    def set_timeout(self, seconds: Optional[float]) -> None:
        """Limit statements to the given time for the current transaction."""
        if seconds is None:
            return
        ms = max(1, math.ceil(seconds * 1000))
        self.exec(self.rebind("SELECT set_config('statement_timeout', ?, true)"), str(ms))

    # -------------------------------------------------------------------------
    # Raw queries
    # -------------------------------------------------------------------------

    def exec(self, query: str, *args: Any) -> int:
        """Execute a statement and return the number of affected rows."""
        logger.debug("exec: %s", query)
        with self.conn.cursor() as cur:
            cur.execute(query, _params(args))
            return cur.rowcount

    def query(self, query: str, *args: Any) -> list[dict[str, Any]]:
        """Execute a query and return all rows as dicts."""
        logger.debug("query: %s", query)
        with self.conn.cursor(row_factory=dict_row) as cur:
            cur.execute(query, _params(args))
            return cur.fetchall()

    def query_row(self, query: str, *args: Any) -> Optional[dict[str, Any]]:
        """Execute a query and return the first row as dict, or None."""
        logger.debug("query row: %s", query)
        with self.conn.cursor(row_factory=dict_row) as cur:
            cur.execute(query, _params(args))
            return cur.fetchone()

    def rebind_exec(self, query: str, *args: Any) -> int:
        return self.exec(self.rebind(query), *args)

    def rebind_query(self, query: str, *args: Any) -> list[dict[str, Any]]:
        return self.query(self.rebind(query), *args)

    def rebind_query_row(self, query: str, *args: Any) -> Optional[dict[str, Any]]:
        return self.query_row(self.rebind(query), *args)

    def named_exec(self, query: str, arg: Any) -> int:
        """Execute a statement binding ``:name`` markers from arg."""
        bound, args = bind_named(query, arg, self.bind_type)
        return self.exec(bound, *args)

    def named_query(self, query: str, arg: Any) -> list[dict[str, Any]]:
        """Execute a query binding ``:name`` markers from arg."""
        bound, args = bind_named(query, arg, self.bind_type)
        return self.query(bound, *args)

    # -------------------------------------------------------------------------
    # Models
    # -------------------------------------------------------------------------

    def get(self, dest: Model, query: str, *args: Any) -> None:
        """
        Populate dest with the first row of query.

        Raises:
            NotFoundError: if the query returns no rows
        """
        logger.debug("get: %s", query)
        with self.conn.cursor(row_factory=dict_row) as cur:
            cur.execute(query, _params(args))
            row = cur.fetchone()
            if row is None:
                raise NotFoundError()
            dest.scan(row, column_types(cur))

    def get_all(self, model_cls: type[M], query: str, *args: Any) -> list[M]:
        """Return one new model_cls instance per row of query."""
        logger.debug("get all: %s", query)
        with self.conn.cursor(row_factory=dict_row) as cur:
            cur.execute(query, _params(args))
            types = column_types(cur)
            result = []
            for row in cur.fetchall():
                model = model_cls()
                model.scan(row, types)
                result.append(model)
            return result

    def select(self, dest: Model, id: str) -> None:
        """Populate dest with the row selected by id."""
        self.get(dest, self._rebind_model(dest.select_query()), id)

    def insert(self, entity: Model, now: Optional[datetime] = None) -> None:
        """
        Insert entity, stamping created_at and updated_at.

        The id returned by the insert is set on the entity, unless the entity
        is ExecInsertable, in which case exactly one row must be affected.
        """
        t0 = now or self.clock.now()
        entity.set_created_at(t0)
        entity.set_updated_at(t0)

        query, args = bind_named(entity.insert_query(), entity, self.bind_type)

        if isinstance(entity, ExecInsertable):
            rows_affected(self.exec(query, *args), 1)
            return

        # Insert query with 'RETURNING id'
        logger.debug("insert: %s", query)
        with self.conn.cursor() as cur:
            cur.execute(query, _params(args))
            row = cur.fetchone()
        if row is None:
            raise NotFoundError()
        id = row[0]
        entity.set_id(id if isinstance(id, str) else str(id))

    def insert_batch(self, entities: Sequence[Model]) -> None:
        """Insert all entities with the same created_at and updated_at."""
        t0 = self.clock.now()
        for entity in entities:
            self.insert(entity, now=t0)

    def update(self, entity: Model) -> None:
        """Update entity, stamping updated_at; exactly one row must change."""
        entity.set_updated_at(self.clock.now())
        query, args = bind_named(entity.update_query(), entity, self.bind_type)
        rows_affected(self.exec(query, *args), 1)

    def delete(self, entity: Model) -> None:
        """Soft-delete entity, setting deleted_at only once the row is updated."""
        t0 = self.clock.now()
        rows_affected(self.exec(self._rebind_model(entity.delete_query()), t0, entity.get_id()), 1)
        entity.set_deleted_at(t0)

    def hard_delete(self, entity: HardDeletable) -> None:
        """Physically delete entity."""
        query = self._rebind_model(hard_delete_query(entity))
        rows_affected(self.exec(query, entity.get_id()), 1)
