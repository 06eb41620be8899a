from typing import Any

from sequel.errors import NotFoundError, RowCountMismatchError, SequelError


def rows_affected(result: Any, n: int) -> None:
    """
    Check that a statement affected exactly n rows.

    Args:
        result: The affected row count, or an object with a ``rowcount``
            attribute such as a psycopg cursor
        n: The expected number of rows

    Raises:
        NotFoundError: if no row was affected, whatever n is
        RowCountMismatchError: if the count is neither zero nor n
    """
    got = result if isinstance(result, int) else getattr(result, "rowcount", -1)
    if got < 0:
        raise SequelError("number of affected rows is not available")
    if got == 0:
        raise NotFoundError()
    if got == n:
        return
    raise RowCountMismatchError(got, n)
