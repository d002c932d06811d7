"""
Shared fixtures: an in-memory stand-in for the psycopg2 connection/cursor
surface the data layer touches, so tests run without a database.
"""

import pytest

from db.executor import PooledExecutor


class FakeResult:
    """Scripted outcome of one execute() call."""

    def __init__(self, rows=(), rowcount=None):
        self.rows = list(rows)
        self.rowcount = len(self.rows) if rowcount is None else rowcount


class FakeCursor:
    def __init__(self, conn, cursor_factory=None):
        self.conn = conn
        self.cursor_factory = cursor_factory
        self.rowcount = -1
        self._rows = []
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True
        return False

    def execute(self, sql, params=None):
        self.conn.executed.append((sql, params))
        result = self.conn.results.pop(0) if self.conn.results else None
        if isinstance(result, BaseException):
            raise result
        if result is None:
            # multi-row INSERT: one affected row per VALUES group
            groups = sql.count("(%s") if sql.startswith("INSERT") else 0
            result = FakeResult(rowcount=groups)
        self.conn.pending.append((sql, params))
        self._rows = list(result.rows)
        self.rowcount = result.rowcount

    def fetchone(self):
        return self._rows.pop(0) if self._rows else None

    def fetchall(self):
        rows, self._rows = self._rows, []
        return rows


class FakeConnection:
    """
    Records every statement. Statements become `committed` on commit()
    and are discarded on rollback().
    """

    def __init__(self):
        self.executed = []
        self.pending = []
        self.committed = []
        self.results = []
        self.cursor_factories = []
        self.commits = 0
        self.rollbacks = 0

    def queue(self, *results):
        self.results.extend(results)

    def cursor(self, cursor_factory=None):
        self.cursor_factories.append(cursor_factory)
        return FakeCursor(self, cursor_factory)

    def commit(self):
        self.commits += 1
        self.committed.extend(self.pending)
        self.pending = []

    def rollback(self):
        self.rollbacks += 1
        self.pending = []


class FakePool:
    def __init__(self, conn):
        self.conn = conn
        self.borrowed = 0
        self.returned = 0

    def getconn(self):
        self.borrowed += 1
        return self.conn

    def putconn(self, conn):
        assert conn is self.conn
        self.returned += 1


@pytest.fixture
def conn():
    return FakeConnection()


@pytest.fixture
def fake_pool(conn):
    return FakePool(conn)


@pytest.fixture
def pooled(fake_pool):
    return PooledExecutor(acquire=fake_pool.getconn, release=fake_pool.putconn)
