"""
Entity contract.

Every persisted object implements Model. Base provides the common columns
(id, created_at, updated_at, deleted_at) as a dataclass, maps dataclass fields
to columns, and reads its query templates from the ``queries`` class
attribute, so templates belong to the model type rather than the instance.

Optional capabilities are mixins checked with isinstance():

    HardDeletable   the model can be physically removed
    ExecInsertable  the insert template returns no id; the caller assigns it

Example:
    @dataclass
    class Person(HardDeletable, Base):
        queries: ClassVar[Queries] = Queries(
            select="SELECT * FROM person WHERE id = $1 AND deleted_at IS NULL",
            insert="INSERT INTO person (name) VALUES (:name) RETURNING id",
            update="UPDATE person SET name = :name WHERE id = :id",
            delete="UPDATE person SET deleted_at = $1 WHERE id = $2",
            hard_delete="DELETE FROM person WHERE id = $1",
        )
        name: str = ""
"""

import dataclasses
import functools
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from types import UnionType
from typing import Any, ClassVar, Optional, Protocol, Union, get_args, get_origin, get_type_hints
from uuid import UUID

from sequel.array import Array
from sequel.errors import ScanError


@dataclass(frozen=True)
class Queries:
    """Query templates of a model type."""

    select: str
    insert: str
    update: str
    delete: str
    hard_delete: Optional[str] = None


class QueryBuilder(Protocol):
    """Interface of the external component generating query templates."""

    def select(self) -> str: ...

    def named_insert_with_returning(self) -> str: ...

    def named_update(self) -> str: ...

    def delete(self) -> str: ...


def queries(builder: QueryBuilder) -> Queries:
    """Collect the model templates from a query builder."""
    hard_delete = getattr(builder, "hard_delete", None)
    return Queries(
        select=builder.select(),
        insert=builder.named_insert_with_returning(),
        update=builder.named_update(),
        delete=builder.delete(),
        hard_delete=hard_delete() if callable(hard_delete) else None,
    )


class Model(ABC):
    """Interface implemented by all the database models."""

    @abstractmethod
    def get_id(self) -> str: ...

    @abstractmethod
    def set_id(self, id: str) -> None: ...

    @abstractmethod
    def set_created_at(self, t: datetime) -> None: ...

    @abstractmethod
    def set_updated_at(self, t: datetime) -> None: ...

    @abstractmethod
    def set_deleted_at(self, t: Optional[datetime]) -> None: ...

    @abstractmethod
    def select_query(self) -> str: ...

    @abstractmethod
    def insert_query(self) -> str: ...

    @abstractmethod
    def update_query(self) -> str: ...

    @abstractmethod
    def delete_query(self) -> str: ...

    @abstractmethod
    def to_params(self) -> dict[str, Any]:
        """Return column values used to bind named parameters."""

    @abstractmethod
    def scan(self, row: Mapping[str, Any], column_types: Optional[Mapping[str, int]] = None) -> None:
        """Populate the model in place from a result row."""


class HardDeletable(Model):
    """A model that can be physically removed from the database."""

    def hard_delete_query(self) -> str:
        queries = getattr(self, "queries", None)
        query = queries.hard_delete if queries else None
        if not query:
            raise TypeError(f"{type(self).__name__} has no hard delete query")
        return query


def hard_delete_query(entity: Model) -> str:
    """
    Return the hard delete template of entity.

    Raises:
        TypeError: if entity is not HardDeletable or has no template
    """
    if not isinstance(entity, HardDeletable):
        raise TypeError(f"{type(entity).__name__} does not support hard delete")
    return entity.hard_delete_query()


class ExecInsertable(Model):
    """A model whose insert already carries the id and returns no row."""


@dataclass(frozen=True)
class _Column:
    name: str
    field: str
    hint: Any


@functools.lru_cache(maxsize=None)
def columns(cls: type) -> dict[str, _Column]:
    """Map column names to the dataclass fields of cls."""
    hints = get_type_hints(cls)
    result = {}
    for f in dataclasses.fields(cls):
        name = f.metadata.get("db", f.name)
        if name == "-":
            continue
        result[name] = _Column(name=name, field=f.name, hint=hints.get(f.name, Any))
    return result


def _convert(value: Any, hint: Any, oid: Optional[int]) -> Any:
    if get_origin(hint) in (Union, UnionType):
        args = [a for a in get_args(hint) if a is not type(None)]
        if len(args) == 1:
            hint = args[0]
    if get_origin(hint) is Array:
        return Array.scan(value, get_args(hint)[0], oid=oid)
    if hint is str and isinstance(value, UUID):
        return str(value)
    return value


@dataclass
class Base(Model):
    """Common columns and behaviour of a model backed by a dataclass."""

    queries: ClassVar[Queries]

    id: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None

    def get_id(self) -> str:
        return self.id

    def set_id(self, id: str) -> None:
        self.id = id

    def set_created_at(self, t: datetime) -> None:
        self.created_at = t

    def set_updated_at(self, t: datetime) -> None:
        self.updated_at = t

    def set_deleted_at(self, t: Optional[datetime]) -> None:
        self.deleted_at = t or None

    def select_query(self) -> str:
        return self.queries.select

    def insert_query(self) -> str:
        return self.queries.insert

    def update_query(self) -> str:
        return self.queries.update

    def delete_query(self) -> str:
        return self.queries.delete

    def to_params(self) -> dict[str, Any]:
        return {c.name: getattr(self, c.field) for c in columns(type(self)).values()}

    def scan(self, row: Mapping[str, Any], column_types: Optional[Mapping[str, int]] = None) -> None:
        cols = columns(type(self))
        column_types = column_types or {}
        values = {}
        for name, value in row.items():
            col = cols.get(name)
            if col is None:
                raise ScanError(f"missing destination name {name} in {type(self).__name__}")
            values[col.field] = _convert(value, col.hint, column_types.get(name))
        for field, value in values.items():
            setattr(self, field, value)
