"""
db/context.py
-------------
Execution context threaded explicitly through every repository call.

The context is what decides, per call, whether a statement runs on the
shared pool or on an open transaction, and whether reads lock their rows.
"""

from dataclasses import dataclass, replace
from typing import Any, Optional

from db.executor import Executor, TransactionExecutor

FOR_UPDATE = "FOR UPDATE"


@dataclass(frozen=True)
class ExecutionContext:
    """
    Request-scoped carrier for one logical unit of work.

    Attributes:
        tx: Executor of the open transaction, or None outside a transaction.
        user_id: Identity of the caller, used only for audit logging.
    """
    tx: Optional[TransactionExecutor] = None
    user_id: Optional[Any] = None

    @property
    def in_transaction(self) -> bool:
        return self.tx is not None

    def with_transaction(self, tx: TransactionExecutor) -> "ExecutionContext":
        return replace(self, tx=tx)

    def with_user(self, user_id: Any) -> "ExecutionContext":
        return replace(self, user_id=user_id)


def resolve(ctx: Optional[ExecutionContext], pooled: Executor) -> tuple[Executor, str]:
    """
    Pick the executor for a call.

    Args:
        ctx: The caller's execution context (None behaves like an empty one).
        pooled: Executor to use outside a transaction.

    Returns:
        (executor, locking_suffix): the transaction's executor and
        "FOR UPDATE" inside a transaction, otherwise `pooled` and "".
    """
    if ctx is not None and ctx.tx is not None:
        return ctx.tx, FOR_UPDATE
    return pooled, ""
