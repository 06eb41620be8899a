"""
Placeholder translation.

Queries are written with portable markers: ``?`` for positional parameters
and ``:name`` for named ones. Before execution they are translated into the
marker syntax of the configured driver:

    QUESTION  ?          (no translation)
    DOLLAR    $1, $2     (Postgres native, psycopg RawCursor)
    FORMAT    %s         (psycopg client-side formatting)

Markers inside single-quoted literals are left untouched, and ``::`` is
always read as a Postgres cast, never as a named parameter. With FORMAT every
literal ``%`` is doubled, since psycopg reads it as the start of a marker.
"""

import re
from collections.abc import Mapping
from enum import Enum
from typing import Any

from sequel.errors import BindError


class BindType(Enum):
    UNKNOWN = "unknown"
    QUESTION = "question"
    DOLLAR = "dollar"
    FORMAT = "format"


_drivers: dict[str, BindType] = {
    "psycopg": BindType.DOLLAR,
    "postgres": BindType.DOLLAR,
    "pgx": BindType.DOLLAR,
    "psycopg-format": BindType.FORMAT,
    "sqlite3": BindType.QUESTION,
}

_POSITIONAL = re.compile(r"'(?:[^']|'')*'|\?|%")
_NAMED = re.compile(r"'(?:[^']|'')*'|::|%|:([A-Za-z_][A-Za-z0-9_.]*)")


def bind_type(driver_name: str) -> BindType:
    """Return the bind type used by the given driver."""
    return _drivers.get(driver_name, BindType.UNKNOWN)


def register_bind_type(driver_name: str, bind: BindType) -> None:
    """Set the bind type for a driver name."""
    _drivers[driver_name] = bind


def _escape(text: str, bind: BindType) -> str:
    if bind is BindType.FORMAT:
        return text.replace("%", "%%")
    return text


def _marker(bind: BindType, n: int) -> str:
    if bind is BindType.DOLLAR:
        return f"${n}"
    if bind is BindType.FORMAT:
        return "%s"
    return "?"


def rebind(query: str, bind: BindType) -> str:
    """
    Translate ``?`` markers into the given bind type, keeping their order
    and count.

    Example:
        rebind("SELECT * FROM t WHERE a = ? AND b = ?", BindType.DOLLAR)
        -> "SELECT * FROM t WHERE a = $1 AND b = $2"
    """
    if bind in (BindType.QUESTION, BindType.UNKNOWN):
        return query

    count = 0

    def replace(match: re.Match) -> str:
        nonlocal count
        if match.group(0) != "?":
            return _escape(match.group(0), bind)
        count += 1
        return _marker(bind, count)

    return _POSITIONAL.sub(replace, query)


def compile_named(query: str, bind: BindType) -> tuple[str, list[str]]:
    """
    Replace ``:name`` markers with positional markers.

    Returns:
        The rewritten query and the parameter names in marker order
    """
    names: list[str] = []

    def replace(match: re.Match) -> str:
        name = match.group(1)
        if name is None:
            return _escape(match.group(0), bind)
        names.append(name)
        return _marker(bind, len(names))

    return _NAMED.sub(replace, query), names


def bind_named(query: str, arg: Any, bind: BindType) -> tuple[str, list[Any]]:
    """
    Bind the named parameters of query to values taken from arg.

    Args:
        query: Query with ``:name`` markers
        arg: A model (values come from ``to_params()``) or a mapping
        bind: Bind type of the target driver

    Returns:
        Tuple of the rebound query and its positional arguments

    Raises:
        BindError: if arg does not provide one of the names
    """
    if isinstance(arg, Mapping):
        params = arg
    elif hasattr(arg, "to_params"):
        params = arg.to_params()
    else:
        raise BindError(f"unsupported named argument type {type(arg).__name__}")

    compiled, names = compile_named(query, bind)
    args = []
    for name in names:
        if name not in params:
            raise BindError(f"could not find name {name} in {type(arg).__name__}")
        args.append(params[name])
    return compiled, args
