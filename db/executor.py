"""
db/executor.py
--------------
Where a statement runs: on a connection borrowed from the pool for the
duration of one call, or on the single connection of an open transaction.

Both executors hand out psycopg2 cursors through `cursor()`, so repositories
never care which one they were given.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Callable, Iterator

from psycopg2 import extras

from db.connection import get_connection, release_connection


class Executor(ABC):
    """Source of cursors for repository statements."""

    @abstractmethod
    def cursor(self, dict_rows: bool = True):
        """
        Context manager yielding a cursor.

        Args:
            dict_rows: Return rows as dicts keyed by column name
                (RealDictCursor) instead of plain tuples.
        """

    @staticmethod
    def _cursor_factory(dict_rows: bool):
        return extras.RealDictCursor if dict_rows else None


class PooledExecutor(Executor):
    """
    Runs each call on its own pooled connection.

    The connection is committed when the `with` block exits cleanly,
    rolled back if it raises, and always returned to the pool.
    """

    def __init__(
        self,
        acquire: Callable = get_connection,
        release: Callable = release_connection,
    ):
        self._acquire = acquire
        self._release = release

    @contextmanager
    def cursor(self, dict_rows: bool = True) -> Iterator:
        conn = self._acquire()
        try:
            with conn.cursor(cursor_factory=self._cursor_factory(dict_rows)) as cur:
                yield cur
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            self._release(conn)


class TransactionExecutor(Executor):
    """
    Runs every call on one connection that belongs to an open transaction.

    Never commits or rolls back; TransactionManager owns that. Not safe for
    concurrent use: one unit of work at a time.
    """

    def __init__(self, conn):
        self.conn = conn

    @contextmanager
    def cursor(self, dict_rows: bool = True) -> Iterator:
        with self.conn.cursor(cursor_factory=self._cursor_factory(dict_rows)) as cur:
            yield cur
