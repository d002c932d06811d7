"""Tests for repositories/metadata.py."""

from typing import Optional

import pytest

from entities import Account, Widget
from repositories.metadata import (
    READ_ONLY_COLUMNS,
    Role,
    classify,
    is_integer_type,
    resolve_columns,
)


class TestClassify:

    @pytest.mark.parametrize("tag", ["", "-"])
    def test_suppressed(self, tag):
        assert classify(tag) is Role.SUPPRESSED

    def test_timestamp_roles(self):
        assert classify("created_at") is Role.CREATED
        assert classify("updated_at") is Role.UPDATED
        assert classify("deleted_at") is Role.DELETED

    @pytest.mark.parametrize("tag", ["id", "is_deleted", "topup_id", "statement_id"])
    def test_read_only(self, tag):
        assert classify(tag) is Role.READ_ONLY

    def test_ordinary(self):
        assert classify("name") is Role.ORDINARY

    def test_custom_read_only_set(self):
        assert classify("tenant_id", READ_ONLY_COLUMNS | {"tenant_id"}) is Role.READ_ONLY
        assert classify("id", set()) is Role.ORDINARY


class TestResolveColumns:

    def test_keeps_declaration_order(self):
        columns = resolve_columns(Widget)
        assert [c.attr for c in columns] == ["id", "name", "created_at", "updated_at"]
        assert [c.role for c in columns] == [Role.READ_ONLY, Role.ORDINARY, Role.CREATED, Role.UPDATED]

    def test_suppressed_fields(self):
        by_attr = {c.attr: c for c in resolve_columns(Account)}
        assert by_attr["note"].role is Role.SUPPRESSED
        assert by_attr["cache"].role is Role.SUPPRESSED
        assert by_attr["cache"].column == ""

    def test_read_only_flag(self):
        by_attr = {c.attr: c for c in resolve_columns(Account)}
        assert by_attr["region"].role is Role.READ_ONLY
        assert by_attr["topup_id"].role is Role.READ_ONLY
        assert by_attr["balance"].writable

    def test_resolves_types(self):
        by_attr = {c.attr: c for c in resolve_columns(Account)}
        assert by_attr["balance"].type is int
        assert by_attr["owner"].type is str

    def test_explicit_mapping(self):
        class Plain:
            id: int
            label: str

        columns = resolve_columns(Plain, [("id", "id"), ("label", "title")])
        assert [(c.attr, c.column, c.role) for c in columns] == [
            ("id", "id", Role.READ_ONLY),
            ("label", "title", Role.ORDINARY),
        ]
        assert columns[1].type is str

    def test_rejects_non_dataclass(self):
        class Plain:
            pass

        with pytest.raises(TypeError):
            resolve_columns(Plain)


class TestIsIntegerType:

    def test_int(self):
        assert is_integer_type(int)
        assert is_integer_type(Optional[int])
        assert is_integer_type(int | None)

    def test_not_int(self):
        assert not is_integer_type(bool)
        assert not is_integer_type(str)
        assert not is_integer_type(Optional[str])
        assert not is_integer_type(None)
