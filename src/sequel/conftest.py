# src/sequel/conftest.py
"""
Pytest configuration and shared fixtures.

Tests are co-located with implementation files using the *_test.py suffix.

Two kinds of fixtures are provided:
    - in-memory fakes of the pool, connection and cursor for engine unit tests
    - a real Postgres database for integration tests, taken from DATABASE_URL;
      integration tests are skipped when it cannot be reached

SEQUEL_ENV is set to "test" by src/conftest.py, which pytest loads before
this package (and sequel.config with it) is imported.
"""

from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import psycopg
import pytest

from sequel.clock import MockClock
from sequel.config import config
from sequel.db import DB

T0 = datetime(2024, 5, 17, 10, 30, 0, tzinfo=timezone.utc)

# =============================================================================
# Fakes
# =============================================================================


@dataclass
class FakeResult:
    """Canned outcome of one statement executed on a FakeConnection."""

    rows: list[dict] = field(default_factory=list)
    rowcount: Optional[int] = None
    types: dict[str, int] = field(default_factory=dict)
    error: Optional[Exception] = None


@dataclass
class FakeColumn:
    name: str
    type_code: Optional[int]


class FakeCursor:
    def __init__(self, conn: "FakeConnection", row_factory: Any = None):
        self.conn = conn
        self.row_factory = row_factory
        self.rowcount = -1
        self.description = None
        self._rows: list[dict] = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, query: str, params: Any = None):
        if "set_config('statement_timeout'" in query:
            self.conn.timeouts.append(params[0])
            result = FakeResult(rows=[{"set_config": params[0]}])
        else:
            self.conn.executed.append((query, params))
            result = self.conn.results.pop(0) if self.conn.results else FakeResult()
        if result.error is not None:
            raise result.error
        self._rows = list(result.rows)
        self.rowcount = len(result.rows) if result.rowcount is None else result.rowcount
        if result.rows:
            self.description = [FakeColumn(name, result.types.get(name)) for name in result.rows[0]]
        return self

    def _make(self, row: dict):
        return dict(row) if self.row_factory is not None else tuple(row.values())

    def fetchone(self):
        if not self._rows:
            return None
        return self._make(self._rows.pop(0))

    def fetchall(self):
        rows, self._rows = self._rows, []
        return [self._make(r) for r in rows]


class FakeConnection:
    def __init__(self):
        self.results: list[FakeResult] = []
        self.executed: list[tuple[str, Any]] = []
        self.timeouts: list[str] = []
        self.commits = 0
        self.rollbacks = 0
        self.cancels = 0
        self.commit_error: Optional[Exception] = None

    def queue(self, *results: FakeResult) -> None:
        self.results.extend(results)

    def cursor(self, row_factory: Any = None) -> FakeCursor:
        return FakeCursor(self, row_factory)

    def commit(self) -> None:
        if self.commit_error is not None:
            raise self.commit_error
        self.commits += 1

    def rollback(self) -> None:
        self.rollbacks += 1

    def cancel_safe(self) -> None:
        self.cancels += 1


class FakePool:
    """Pool handing out a single FakeConnection."""

    def __init__(self, conn: FakeConnection):
        self.conn = conn
        self.borrowed = 0
        self.returned = 0
        self.timeouts: list[Optional[float]] = []
        self.closed = False

    @contextmanager
    def connection(self, timeout: Optional[float] = None):
        self.timeouts.append(timeout)
        self.borrowed += 1
        try:
            yield self.conn
        except Exception:
            self.conn.rollback()
            raise
        else:
            self.conn.commit()
        finally:
            self.returned += 1

    def getconn(self, timeout: Optional[float] = None) -> FakeConnection:
        self.timeouts.append(timeout)
        self.borrowed += 1
        return self.conn

    def putconn(self, conn: FakeConnection) -> None:
        self.returned += 1

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_conn() -> FakeConnection:
    return FakeConnection()


@pytest.fixture
def fake_pool(fake_conn) -> FakePool:
    return FakePool(fake_conn)


@pytest.fixture
def mock_clock() -> MockClock:
    return MockClock(T0)


@pytest.fixture
def fake_db(fake_pool, mock_clock) -> DB:
    """DB running on the fake pool with a frozen clock."""
    return DB(fake_pool, clock=mock_clock)


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def test_db():
    """
    Apply the test schema once per test session.

    Skips the requesting tests when DATABASE_URL is unset or unreachable.
    """
    if config.environment != "test":
        raise RuntimeError(f"refusing to reset the {config.environment} database")
    if not config.database_url:
        pytest.skip("DATABASE_URL is not set")

    schema_file = Path(__file__).parent.parent.parent / "testdata" / "schema.sql"
    if not schema_file.exists():
        raise FileNotFoundError(f"Schema file not found: {schema_file}")

    try:
        conn = psycopg.connect(config.database_url, connect_timeout=5)
    except psycopg.OperationalError as e:
        pytest.skip(f"Postgres is not available: {e}")

    with conn:
        with conn.cursor() as cur:
            cur.execute(schema_file.read_text())

    yield config.database_url


@pytest.fixture
def db(test_db):
    """
    Provide a DB connected to the test database.

    Tables are truncated before each test so tests don't affect each other.
    """
    with psycopg.connect(test_db) as conn:
        conn.execute("TRUNCATE person_test, array_test")

    handle = DB.connect(test_db)
    yield handle
    handle.close()
