"""
Typed array columns.

Array[T] is a list of T persisted in a Postgres array column. Writing needs
nothing special: psycopg dumps lists as arrays and None as NULL. Reading goes
through array_scan(), which decodes the textual array literal with the loader
registered for the column's array type oid and checks that the oid really
holds elements of type T.

The absent (NULL) and empty ({}) states are distinct: the first scans to
None, the second to an empty Array.

Usage:
    @dataclass
    class Host(Base):
        ports: Optional[Array[int]] = None
        networks: Optional[Array[NetworkPrefix]] = None
"""

import types as _pytypes
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from ipaddress import IPv4Network, IPv6Network
from typing import Any, Generic, Iterator, Optional, TypeVar, Union, get_args, get_origin
from uuid import UUID

import psycopg
from psycopg import postgres
from psycopg.adapt import Loader
from psycopg.pq import Format

from sequel.errors import (
    ArrayParseError,
    ArrayTypeMismatchError,
    NoTypeDescriptorError,
    UnsupportedSourceError,
)

T = TypeVar("T")

NetworkPrefix = Union[IPv4Network, IPv6Network]


def element_types_of(element_type: Any) -> tuple:
    """Flatten a union annotation into its member types."""
    if get_origin(element_type) in (Union, _pytypes.UnionType):
        return get_args(element_type)
    return (element_type,)


def type_name(element_type: Any) -> str:
    return getattr(element_type, "__name__", None) or repr(element_type)


@dataclass(frozen=True)
class ArrayType:
    """Descriptor of a Postgres array type."""

    name: str
    oid: int
    element_oid: int
    element_types: tuple

    def accepts(self, element_type: Any) -> bool:
        return all(t in self.element_types for t in element_types_of(element_type))

    def loader(self) -> Loader:
        loader_cls = psycopg.adapters.get_loader(self.oid, Format.TEXT)
        if loader_cls is None:
            raise NoTypeDescriptorError(f"no loader found for {self.name}[] (oid {self.oid})")
        return loader_cls(self.oid)


class ArrayTypeRegistry:
    """
    Array type descriptors keyed by array oid.

    The first descriptor registered for an element type is the default one
    used when the column oid is unknown.
    """

    def __init__(self):
        self._by_oid: dict[int, ArrayType] = {}

    def register(self, name: str, *element_types: type) -> ArrayType:
        info = postgres.types.get(name)
        if info is None:
            raise KeyError(f"unknown postgres type {name!r}")
        array_type = ArrayType(
            name=name,
            oid=info.array_oid,
            element_oid=info.oid,
            element_types=element_types,
        )
        self._by_oid[array_type.oid] = array_type
        return array_type

    def for_oid(self, oid: int) -> ArrayType:
        try:
            return self._by_oid[oid]
        except KeyError:
            raise NoTypeDescriptorError(f"no array type found for oid {oid}") from None

    def for_element(self, element_type: Any) -> ArrayType:
        for array_type in self._by_oid.values():
            if array_type.accepts(element_type):
                return array_type
        raise NoTypeDescriptorError(f"cannot find type for Array[{type_name(element_type)}]")

    def __iter__(self) -> Iterator[ArrayType]:
        return iter(self._by_oid.values())

    def __contains__(self, oid: int) -> bool:
        return oid in self._by_oid


types = ArrayTypeRegistry()
types.register("int8", int)
types.register("int4", int)
types.register("int2", int)
types.register("text", str)
types.register("varchar", str)
types.register("bpchar", str)
types.register("bool", bool)
types.register("float8", float)
types.register("float4", float)
types.register("numeric", Decimal)
types.register("uuid", UUID)
types.register("date", date)
types.register("timestamptz", datetime)
types.register("timestamp", datetime)
types.register("cidr", IPv4Network, IPv6Network)


def array_scan(
    oid: int,
    src: Any,
    element_type: Any,
    registry: ArrayTypeRegistry = types,
) -> Optional[list]:
    """
    Decode an array literal using the array type with the given oid.

    Args:
        oid: Postgres oid of the array type, e.g. 1007 for int4[]
        src: None, or the textual literal as str or bytes, e.g. "{1,2,3}"
        element_type: Expected Python element type

    Returns:
        None for NULL, otherwise the list of elements

    Raises:
        UnsupportedSourceError: if src is not NULL, str or bytes
        NoTypeDescriptorError: if oid is not a registered array type
        ArrayTypeMismatchError: if the oid does not hold element_type
        ArrayParseError: if the literal is malformed
    """
    if src is None:
        return None
    if isinstance(src, str):
        data = src.encode()
    elif isinstance(src, (bytes, bytearray, memoryview)):
        data = bytes(src)
    else:
        raise UnsupportedSourceError(f"unsupported type {type(src).__name__}")

    array_type = registry.for_oid(oid)
    if not array_type.accepts(element_type):
        raise ArrayTypeMismatchError(
            f"cannot scan {array_type.name}[] into Array[{type_name(element_type)}]"
        )

    literal = data.strip()
    if not literal.startswith((b"{", b"[")) or not literal.endswith(b"}"):
        raise ArrayParseError(f"malformed array literal {data[:32]!r}")

    try:
        values = array_type.loader().load(literal)
    except (psycopg.Error, ValueError) as e:
        raise ArrayParseError(f"cannot parse {array_type.name}[] literal: {e}") from e

    for value in values:
        if isinstance(value, list):
            raise ArrayParseError("multi-dimensional arrays are not supported")
        if value is not None and type(value) not in array_type.element_types:
            raise ArrayTypeMismatchError(
                f"unexpected element {type(value).__name__} in {array_type.name}[]"
            )
    return values


class Array(list, Generic[T]):
    """A list persisted as a Postgres array column."""

    @classmethod
    def scan(
        cls,
        src: Any,
        element_type: Any,
        oid: Optional[int] = None,
        registry: ArrayTypeRegistry = types,
    ) -> Optional["Array"]:
        """
        Build an Array from a column value.

        When oid is not given, the default array type for element_type is
        used. Returns None for NULL.
        """
        if oid is None:
            oid = registry.for_element(element_type).oid
        values = array_scan(oid, src, element_type, registry)
        if values is None:
            return None
        return cls(values)


class ArrayLiteralLoader(Loader):
    """Load an array column as its textual literal, leaving decoding to Array.scan."""

    format = Format.TEXT

    def load(self, data) -> str:
        return bytes(data).decode()
