"""
repositories/fragments.py
-------------------------
Precomputed SQL fragments for one entity type.

An EntityDescriptor is built once per repository and never changes. Its
fragments are plain strings that the repository drops into statements:

    select_fields      "id", "name", "created_at", "updated_at"
    insert_fields      "name", "created_at", "updated_at"
    insert_params      :name, :created_at, :updated_at
    update_set_fields  "updated_at" = :updated_at,"name" = :name
"""

import dataclasses
from dataclasses import dataclass
from typing import Any, Generic, Iterable, Mapping, Optional, Sequence, TypeVar

from db.errors import DecodeError
from repositories.metadata import (
    CREATED_AT,
    READ_ONLY_COLUMNS,
    UPDATED_AT,
    ColumnSpec,
    Role,
    resolve_columns,
)

T = TypeVar("T")


def quote(name: str) -> str:
    return f'"{name}"'


@dataclass(frozen=True)
class EntityDescriptor(Generic[T]):
    """Column layout and SQL fragments of an entity type."""
    model: type
    columns: tuple[ColumnSpec, ...]
    select_columns: tuple[str, ...]
    insert_columns: tuple[str, ...]
    writable: tuple[ColumnSpec, ...]
    has_created: bool
    has_updated: bool
    select_fields: str
    insert_fields: str
    insert_params: str
    update_set_fields: str

    def by_column(self) -> dict[str, ColumnSpec]:
        return {c.column: c for c in self.columns if c.selectable}


def build_descriptor(
    model: type,
    mapping: Optional[Sequence[tuple[str, str]]] = None,
    read_only: Iterable[str] = READ_ONLY_COLUMNS,
) -> EntityDescriptor:
    """
    Resolve the columns of `model` and precompute its fragments.

    Deterministic: the same model always yields the same strings.
    """
    columns = resolve_columns(model, mapping, read_only)
    selectable = [c for c in columns if c.selectable]
    writable = tuple(c for c in columns if c.writable)
    has_created = any(c.role is Role.CREATED for c in columns)
    has_updated = any(c.role is Role.UPDATED for c in columns)

    insert_columns = [c.column for c in writable]
    if has_created:
        insert_columns.append(CREATED_AT)
    if has_updated:
        insert_columns.append(UPDATED_AT)

    set_fields = [f"{quote(UPDATED_AT)} = :{UPDATED_AT}"]
    set_fields += [f"{quote(c.column)} = :{c.column}" for c in writable]

    return EntityDescriptor(
        model=model,
        columns=columns,
        select_columns=tuple(c.column for c in selectable),
        insert_columns=tuple(insert_columns),
        writable=writable,
        has_created=has_created,
        has_updated=has_updated,
        select_fields=", ".join(quote(c.column) for c in selectable),
        insert_fields=", ".join(quote(name) for name in insert_columns),
        insert_params=", ".join(f":{name}" for name in insert_columns),
        update_set_fields=",".join(set_fields),
    )


def decode(descriptor: EntityDescriptor[T], row: Mapping[str, Any]) -> T:
    """
    Build an entity from a result row keyed by column name.

    Dataclasses and named tuples are built through their constructor; other
    classes described by a mapping get their attributes set directly.

    Raises:
        DecodeError: If the row has a column the entity does not map, or the
            entity cannot be constructed from the row.
    """
    by_column = descriptor.by_column()
    kwargs = {}
    for name, value in row.items():
        spec = by_column.get(name)
        if spec is None:
            raise DecodeError(
                f"missing destination name {name!r} in {descriptor.model.__name__}"
            )
        kwargs[spec.attr] = value

    model = descriptor.model
    if dataclasses.is_dataclass(model) or hasattr(model, "_fields"):
        try:
            return model(**kwargs)
        except TypeError as e:
            raise DecodeError(f"cannot build {model.__name__} from row: {e}") from e

    # plain class described by a mapping: fill attributes without calling __init__
    entity = model.__new__(model)
    try:
        for attr, value in kwargs.items():
            setattr(entity, attr, value)
    except AttributeError as e:
        raise DecodeError(f"cannot build {model.__name__} from row: {e}") from e
    return entity
