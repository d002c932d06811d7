"""
repositories/bulk.py
--------------------
Multi-row INSERT in fixed-size batches.

Rows are packed ROWS_PER_INSERT at a time into one statement with numbered
placeholders:

    INSERT INTO t ("a", "b") VALUES ($1,$2),($3,$4),...

The full-width statement is built once per inserter; a shorter one is built
for the trailing partial batch. Batches are executed one after the other and
are only atomic as a whole when the executor belongs to a transaction.
"""

from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any, Optional

import psycopg2

from db.errors import ValidationError
from db.executor import Executor
from db.statement import PositionalStatement
from repositories.fragments import EntityDescriptor
from repositories.metadata import is_integer_type
from utils.logger import get_logger

logger = get_logger(__name__)

ROWS_PER_INSERT = 100


def write_stmt(rows: int, num_fields: int, stmt: str) -> str:
    """
    Append `rows` groups of `num_fields` placeholders to `stmt`.

    Row i, column k gets placeholder $(i * num_fields + k + 1).
    """
    groups = []
    for i in range(rows):
        placeholders = ",".join(f"${i * num_fields + k + 1}" for k in range(num_fields))
        groups.append(f"({placeholders})")
    return stmt + ",".join(groups)


def string_to_int(value: Any) -> int:
    """
    Parse a numeric string such as " 1500.00" as an integer, dropping the
    fractional part.

    Raises:
        ValidationError: If what is left is not an integer.
    """
    text = str(value)
    dot = text.find(".")
    if dot > -1:
        text = text[:dot]
    try:
        return int(text.strip())
    except ValueError:
        raise ValidationError(f"cannot convert {value!r} to an integer") from None


class BulkInserter:
    """Batched INSERT for one entity type and table."""

    def __init__(self, descriptor: EntityDescriptor, table: str):
        self.descriptor = descriptor
        self.table = table
        self.width = len(descriptor.insert_columns)
        self.prefix = f"INSERT INTO {table} ({descriptor.insert_fields}) VALUES "
        self._full = (
            PositionalStatement(write_stmt(ROWS_PER_INSERT, self.width, self.prefix))
            if self.width else None
        )

    def _row_values(self, element: Any) -> list:
        """Values of the writable columns of one element, in column order."""
        columns = self.descriptor.columns
        if type(element) in (list, tuple):
            # raw row: one value per declared field, read-only ones included;
            # tuple subclasses (NamedTuple entities) are read by attribute
            if len(element) != len(columns):
                raise ValidationError(
                    f"row has {len(element)} values, "
                    f"{self.descriptor.model.__name__} declares {len(columns)} fields"
                )
            pairs = [(spec, value) for spec, value in zip(columns, element) if spec.writable]
        else:
            pairs = [(spec, getattr(element, spec.attr)) for spec in self.descriptor.writable]

        values = []
        for spec, value in pairs:
            if isinstance(value, str) and is_integer_type(spec.type):
                value = string_to_int(value)
            values.append(value)
        return values

    def _exec(self, executor: Executor, stmt: PositionalStatement, values: list) -> int:
        try:
            with executor.cursor(dict_rows=False) as cur:
                affected = stmt.exec(cur, values)
        except psycopg2.Error as e:
            logger.error(f"Bulk insert into {self.table} failed: {e}")
            raise
        logger.info(f"Bulk inserted {affected} rows into {self.table}")
        return affected

    def insert(self, executor: Executor, elements: Sequence, user_id: Optional[Any] = None) -> int:
        """
        Insert `elements` and return the total affected-row count.

        Args:
            executor: Where the statements run.
            elements: Entity instances, or raw value rows aligned with the
                entity's declared fields.
            user_id: Caller identity, for the log only.

        Raises:
            ValidationError: For non-sequence or empty input, or a value that
                cannot be coerced to its integer column. Raised before the
                batch holding the bad element is sent.
            psycopg2.Error: Unchanged from the driver. Batches already
                executed are not undone here.
        """
        if isinstance(elements, (str, bytes, Mapping)) or not isinstance(elements, Sequence):
            raise ValidationError("elements must be a sequence")
        if len(elements) == 0:
            raise ValidationError("elements is empty")
        if self._full is None:
            raise ValidationError(f"{self.descriptor.model.__name__} has no insertable columns")

        count = 0
        pending: list = []
        for i, element in enumerate(elements):
            now = datetime.now(timezone.utc)
            pending.extend(self._row_values(element))
            if self.descriptor.has_created:
                pending.append(now)
            if self.descriptor.has_updated:
                pending.append(now)

            if (i + 1) % ROWS_PER_INSERT == 0:
                count += self._exec(executor, self._full, pending)
                pending = []

        if pending:
            rows = len(pending) // self.width
            stmt = PositionalStatement(write_stmt(rows, self.width, self.prefix))
            count += self._exec(executor, stmt, pending)

        if user_id is not None:
            logger.info(f"User {user_id} bulk inserted {count} rows into {self.table}")
        return count
