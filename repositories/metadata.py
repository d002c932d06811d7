"""
repositories/metadata.py
------------------------
Column metadata for entity types.

An entity is a dataclass whose fields declare their column with `column()`:

    @dataclass
    class Account:
        name: str = column("name")
        balance: int = column("balance", default=0)
        id: Optional[int] = column("id", default=None)
        created_at: Optional[datetime] = column("created_at", default=None)

Fields are resolved once, in declaration order, into ColumnSpec entries and
classified by their column name. The order is never changed afterwards:
select, insert and update fragments all follow it.
"""

import dataclasses
import types
import typing
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional, Sequence

DB_KEY = "db"
READ_ONLY_KEY = "db_read_only"

SUPPRESSED_TAGS = frozenset({"", "-"})

CREATED_AT = "created_at"
UPDATED_AT = "updated_at"
DELETED_AT = "deleted_at"

# Columns the database or another subsystem fills in; never inserted or updated.
READ_ONLY_COLUMNS = frozenset({
    "is_deleted",
    DELETED_AT,
    "id",
    CREATED_AT,
    UPDATED_AT,
    "topup_method_id",
    "bs_topup_banktransfer_id",
    "bs_topup_virtualaccount_id",
    "bs_topup_provider_id",
    "topup_id",
    "topup_recon_matched_id",
    "topup_recon_unmatched_id",
    "statement_id",
    "transfer_recon_unmatched_id",
    "transfer_recon_matched_id",
})


class Role(Enum):
    SUPPRESSED = "suppressed"
    READ_ONLY = "read_only"
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    ORDINARY = "ordinary"


@dataclass(frozen=True)
class ColumnSpec:
    """
    One entity attribute and the column it maps to.

    Attributes:
        attr: Attribute name on the entity.
        column: Column name (unquoted), or "" / "-" when suppressed.
        role: Classification of the column.
        type: Declared type of the attribute, if known.
    """
    attr: str
    column: str
    role: Role
    type: Any = None

    @property
    def selectable(self) -> bool:
        return self.role is not Role.SUPPRESSED

    @property
    def writable(self) -> bool:
        """True for columns that go into INSERT and UPDATE statements."""
        return self.role is Role.ORDINARY


def column(name: str, *, read_only: bool = False, **kwargs):
    """
    Declare the column of a dataclass field.

    Args:
        name: Column name; "" or "-" suppresses the field.
        read_only: Keep the column out of INSERT/UPDATE even if its name
            is not one of READ_ONLY_COLUMNS.
        **kwargs: Passed through to dataclasses.field (default, repr, ...).
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[DB_KEY] = name
    if read_only:
        metadata[READ_ONLY_KEY] = True
    return dataclasses.field(metadata=metadata, **kwargs)


def classify(tag: str, read_only: Iterable[str] = READ_ONLY_COLUMNS) -> Role:
    """Classify a column name."""
    if tag in SUPPRESSED_TAGS:
        return Role.SUPPRESSED
    if tag == CREATED_AT:
        return Role.CREATED
    if tag == UPDATED_AT:
        return Role.UPDATED
    if tag == DELETED_AT:
        return Role.DELETED
    if tag in read_only:
        return Role.READ_ONLY
    return Role.ORDINARY


def _type_hints(model: type) -> dict:
    try:
        return typing.get_type_hints(model)
    except (NameError, TypeError):
        return dict(getattr(model, "__annotations__", {}))


def resolve_columns(
    model: type,
    mapping: Optional[Sequence[tuple[str, str]]] = None,
    read_only: Iterable[str] = READ_ONLY_COLUMNS,
) -> tuple[ColumnSpec, ...]:
    """
    Resolve the columns of an entity type.

    Args:
        model: The entity class.
        mapping: Explicit (attribute, column) pairs. When omitted, `model`
            must be a dataclass and columns come from `column()` metadata.
        read_only: Column names treated as read-only.

    Returns:
        ColumnSpec entries in declaration (or mapping) order.

    Raises:
        TypeError: If no mapping is given and `model` is not a dataclass.
    """
    read_only = frozenset(read_only)
    hints = _type_hints(model)

    if mapping is not None:
        return tuple(
            ColumnSpec(attr, tag, classify(tag, read_only), hints.get(attr))
            for attr, tag in mapping
        )

    if not (isinstance(model, type) and dataclasses.is_dataclass(model)):
        raise TypeError(f"{model!r} is not a dataclass; pass an explicit column mapping")

    specs = []
    for f in dataclasses.fields(model):
        tag = f.metadata.get(DB_KEY, "")
        role = classify(tag, read_only)
        if role is Role.ORDINARY and f.metadata.get(READ_ONLY_KEY):
            role = Role.READ_ONLY
        specs.append(ColumnSpec(f.name, tag, role, hints.get(f.name, f.type)))
    return tuple(specs)


def is_integer_type(tp: Any) -> bool:
    """True for `int` and `Optional[int]` annotations (bool excluded)."""
    if tp is int:
        return True
    if typing.get_origin(tp) in (typing.Union, types.UnionType):
        args = [a for a in typing.get_args(tp) if a is not type(None)]
        return len(args) == 1 and args[0] is int
    return False
