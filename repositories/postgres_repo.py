"""
repositories/postgres_repo.py
-----------------------------
Generic PostgreSQL repository.

One class serves every entity type: the columns come from the entity's
metadata, the SQL fragments are precomputed at construction, and each call
only adds the caller's predicate and arguments.

    accounts = PostgresRepository("accounts", Account)
    acc = accounts.find_by_id(ctx, 42)
    rich = accounts.where(ctx, '"balance" > :min', {"min": 1000})
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator, Optional, Sequence

import psycopg2

from db.context import ExecutionContext, resolve
from db.errors import ValidationError
from db.executor import Executor, PooledExecutor
from db.statement import NamedArgs, NamedStatement, PositionalStatement
from repositories.base import GenericRepository, T
from repositories.bulk import BulkInserter
from repositories.fragments import build_descriptor, decode
from repositories.metadata import CREATED_AT, DELETED_AT, READ_ONLY_COLUMNS, UPDATED_AT
from utils.logger import get_logger

logger = get_logger(__name__)

UPDATE_ALIAS = "A"
DEFAULT_ORDER_BY = "ID"


def _sql(*parts: str) -> str:
    return " ".join(p for p in parts if p)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PostgresRepository(GenericRepository[T]):
    """Repository for CRUD operations on one table, for any entity type."""

    def __init__(
        self,
        table: str,
        model: type,
        *,
        mapping: Optional[Sequence[tuple[str, str]]] = None,
        read_only: Iterable[str] = READ_ONLY_COLUMNS,
        executor: Optional[Executor] = None,
    ):
        """
        Args:
            table: Table name, used verbatim in the SQL.
            model: Entity class (a dataclass using `column()`, or any class
                when `mapping` is given).
            mapping: Explicit (attribute, column) pairs.
            read_only: Column names kept out of INSERT/UPDATE.
            executor: Executor used outside transactions (defaults to the
                shared pool).
        """
        self.table = table
        self.descriptor = build_descriptor(model, mapping, read_only)
        self.pooled = executor or PooledExecutor()
        self._bulk = BulkInserter(self.descriptor, table)

    @property
    def update_set_fields(self) -> str:
        """SET clause covering every writable column, for use with update()."""
        return self.descriptor.update_set_fields

    @contextmanager
    def _logged(self, action: str) -> Iterator[None]:
        try:
            yield
        except psycopg2.Error as e:
            logger.error(f"Failed to {action} {self.table}: {e}")
            raise

    # ── READ ──────────────────────────────────────────────

    def find_by_id(self, ctx: Optional[ExecutionContext], id: Any) -> T:
        """
        Fetch the row whose "id" column equals `id`.

        Raises:
            NoRowsError: If there is no such row.
        """
        return self.single(ctx, '"id" = :id', {"id": id})

    def single(self, ctx: Optional[ExecutionContext], where: str, args: Optional[NamedArgs] = None) -> T:
        """
        Fetch the first row matching `where`.
        Inside a transaction the row is locked FOR UPDATE.

        Raises:
            NoRowsError: If nothing matches.
        """
        executor, lock = resolve(ctx, self.pooled)
        stmt = NamedStatement(_sql(
            "SELECT", self.descriptor.select_fields, "FROM", self.table,
            "WHERE", where, "LIMIT 1", lock,
        ))
        with self._logged("read from"), executor.cursor() as cur:
            row = stmt.get(cur, args)
        return decode(self.descriptor, row)

    def where(self, ctx: Optional[ExecutionContext], where: str, args: Optional[NamedArgs] = None) -> list[T]:
        """Fetch every row matching `where`."""
        executor, lock = resolve(ctx, self.pooled)
        stmt = NamedStatement(_sql(
            "SELECT", self.descriptor.select_fields, "FROM", self.table, "WHERE", where, lock,
        ))
        with self._logged("read from"), executor.cursor() as cur:
            rows = stmt.select(cur, args)
        return [decode(self.descriptor, r) for r in rows]

    def select_all(
        self,
        ctx: Optional[ExecutionContext],
        order_by: str,
        limit: str,
        args: Optional[NamedArgs] = None,
    ) -> list[T]:
        """
        Fetch rows without a predicate.

        Args:
            order_by: ORDER BY expression; "ID" when empty.
            limit: LIMIT expression, e.g. "50", "ALL" or ":limit".
            args: Values for placeholders in `order_by` / `limit`.
        """
        executor, lock = resolve(ctx, self.pooled)
        stmt = NamedStatement(_sql(
            "SELECT", self.descriptor.select_fields, "FROM", self.table,
            "ORDER BY", order_by or DEFAULT_ORDER_BY, "LIMIT", limit, lock,
        ))
        with self._logged("read from"), executor.cursor() as cur:
            rows = stmt.select(cur, args)
        return [decode(self.descriptor, r) for r in rows]

    # ── CREATE ────────────────────────────────────────────

    def _insert_args(self, elem: T) -> dict:
        args = {spec.column: getattr(elem, spec.attr) for spec in self.descriptor.writable}
        now = _utcnow()
        args[CREATED_AT] = now
        args[UPDATED_AT] = now
        args[DELETED_AT] = None
        return args

    def insert(self, ctx: Optional[ExecutionContext], elem: T) -> T:
        """
        Insert one entity and return the stored row.

        created_at / updated_at are set to the current UTC time; the
        returned entity carries the database-generated id.
        """
        executor, _ = resolve(ctx, self.pooled)
        stmt = NamedStatement(_sql(
            "INSERT INTO", self.table, f"({self.descriptor.insert_fields})",
            "VALUES", f"({self.descriptor.insert_params})",
            "RETURNING", self.descriptor.select_fields,
        ))
        with self._logged("insert into"), executor.cursor() as cur:
            row = stmt.get(cur, self._insert_args(elem))
        logger.info(f"Inserted row into {self.table}{self._by(ctx)}")
        return decode(self.descriptor, row)

    def insert_bulk(self, ctx: Optional[ExecutionContext], elements: Sequence) -> None:
        """Insert many entities in batches; see insert_bulk_with_count."""
        self.insert_bulk_with_count(ctx, elements)

    def insert_bulk_with_count(self, ctx: Optional[ExecutionContext], elements: Sequence) -> int:
        """
        Insert many entities in batches of ROWS_PER_INSERT rows.

        Outside a transaction every batch commits on its own, so a failure
        leaves earlier batches in place. Run inside a transaction for
        all-or-nothing.

        Returns:
            Total number of inserted rows.

        Raises:
            ValidationError: For empty or non-sequence input.
        """
        executor, _ = resolve(ctx, self.pooled)
        return self._bulk.insert(executor, elements, ctx.user_id if ctx else None)

    # ── UPDATE ────────────────────────────────────────────

    def update(
        self,
        ctx: Optional[ExecutionContext],
        fields: str,
        where: str,
        args: Optional[NamedArgs] = None,
    ) -> int:
        """
        Run `UPDATE <table> A SET <fields> WHERE <where>`.

        `:updated_at` is bound to the current UTC time unless `args` has it.

        Returns:
            Number of rows the driver reports as updated.
        """
        executor, _ = resolve(ctx, self.pooled)
        stmt = NamedStatement(_sql(
            "UPDATE", self.table, UPDATE_ALIAS, "SET", fields, "WHERE", where,
        ))
        params = dict(args or {})
        params.setdefault(UPDATED_AT, _utcnow())
        with self._logged("update"), executor.cursor() as cur:
            updated = stmt.exec(cur, params)
        logger.info(f"Updated {updated} rows in {self.table}{self._by(ctx)}")
        return updated

    # ── DELETE ────────────────────────────────────────────

    def delete(self, ctx: Optional[ExecutionContext], where: str, args: Optional[NamedArgs] = None) -> int:
        """
        Soft delete: set "deleted_at" on every row matching `where`.
        The rows stay in the table.
        """
        executor, _ = resolve(ctx, self.pooled)
        stmt = NamedStatement(_sql(
            "UPDATE", self.table, f'SET "{DELETED_AT}" = :{DELETED_AT}', "WHERE", where,
        ))
        params = dict(args or {})
        params.setdefault(DELETED_AT, _utcnow())
        with self._logged("soft delete from"), executor.cursor() as cur:
            deleted = stmt.exec(cur, params)
        logger.info(f"Soft deleted {deleted} rows in {self.table}{self._by(ctx)}")
        return deleted

    def permanent_delete(self, ctx: Optional[ExecutionContext], where: str, args: Optional[NamedArgs]) -> int:
        """
        Remove matching rows from the table (use with caution).

        Raises:
            ValidationError: If `args` is None or `where` is blank; nothing
                is sent to the database in that case.
        """
        if args is None or not where or not where.strip():
            raise ValidationError("there must be a where condition for deletion")

        executor, _ = resolve(ctx, self.pooled)
        stmt = NamedStatement(_sql("DELETE FROM", self.table, "WHERE", where))
        with self._logged("delete from"), executor.cursor() as cur:
            deleted = stmt.exec(cur, args)
        logger.info(f"Permanently deleted {deleted} rows from {self.table}{self._by(ctx)}")
        return deleted

    # ── CUSTOM ────────────────────────────────────────────

    def custom_query(
        self, ctx: Optional[ExecutionContext], stmt: str, args: Sequence[Any] = ()
    ) -> list[list]:
        """
        Run an arbitrary statement with `$N` placeholders.

        Returns:
            One list of column values per result row, in column order.
        """
        executor, _ = resolve(ctx, self.pooled)
        statement = PositionalStatement(stmt)
        with self._logged("query"), executor.cursor(dict_rows=False) as cur:
            rows = statement.query_rows(cur, list(args))
        return [list(r) for r in rows]

    def custom_any_query(self, ctx: Optional[ExecutionContext], stmt: str, arg: Iterable[Any]) -> list[list]:
        """
        Run an arbitrary statement whose only parameter, $1, is an array,
        e.g. `SELECT ... WHERE "id" = ANY($1)`.
        Inside a transaction the statement gets FOR UPDATE appended.
        """
        executor, lock = resolve(ctx, self.pooled)
        statement = PositionalStatement(_sql(stmt, lock))
        with self._logged("query"), executor.cursor(dict_rows=False) as cur:
            rows = statement.query_rows(cur, [list(arg)])
        return [list(r) for r in rows]

    # ── HELPERS ───────────────────────────────────────────

    @staticmethod
    def _by(ctx: Optional[ExecutionContext]) -> str:
        if ctx is not None and ctx.user_id is not None:
            return f" by user {ctx.user_id}"
        return ""
