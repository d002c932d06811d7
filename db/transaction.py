"""
db/transaction.py
-----------------
Begin / commit / rollback around a unit of work.

Usage:
    manager = TransactionManager()
    with manager.transaction(ctx) as tx_ctx:
        orders.insert(tx_ctx, order)
        stock.update(tx_ctx, '"qty" = "qty" - :n', '"id" = :id', {...})

Every repository call made with `tx_ctx` runs on the same connection and
reads take row locks. Any exception leaving the block rolls the whole unit
back and is re-raised; a clean exit commits.
"""

from contextlib import contextmanager
from typing import Callable, Iterator, Optional, TypeVar

from db.connection import get_connection, release_connection
from db.context import ExecutionContext
from db.executor import TransactionExecutor
from utils.logger import get_logger

logger = get_logger(__name__)

R = TypeVar("R")


class TransactionManager:
    """Opens transactions on pooled connections."""

    def __init__(
        self,
        acquire: Callable = get_connection,
        release: Callable = release_connection,
    ):
        self._acquire = acquire
        self._release = release

    @contextmanager
    def transaction(self, ctx: Optional[ExecutionContext] = None) -> Iterator[ExecutionContext]:
        """
        Yield a context bound to a new transaction.

        If `ctx` is already inside a transaction, that transaction is reused
        and its owner stays responsible for commit/rollback.
        """
        ctx = ctx or ExecutionContext()
        if ctx.in_transaction:
            yield ctx
            return

        conn = self._acquire()
        try:
            yield ctx.with_transaction(TransactionExecutor(conn))
            conn.commit()
            logger.debug("Transaction committed.")
        except BaseException as e:
            conn.rollback()
            logger.error(f"Transaction rolled back: {e!r}")
            raise
        finally:
            self._release(conn)

    def run_in_transaction(
        self, ctx: Optional[ExecutionContext], fn: Callable[[ExecutionContext], R]
    ) -> R:
        """
        Run `fn` with a transactional context and return its result.

        Raises:
            Whatever `fn` (or the commit) raised, after rolling back.
        """
        with self.transaction(ctx) as tx_ctx:
            return fn(tx_ctx)
