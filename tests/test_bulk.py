"""Tests for repositories/bulk.py."""

from datetime import datetime, timedelta, timezone

import psycopg2
import pytest

from db.errors import ValidationError
from db.executor import TransactionExecutor
from entities import Ledger, Widget
from repositories.bulk import ROWS_PER_INSERT, BulkInserter, string_to_int, write_stmt
from repositories.fragments import build_descriptor


@pytest.fixture
def widgets():
    return BulkInserter(build_descriptor(Widget), "widgets")


@pytest.fixture
def ledger():
    return BulkInserter(build_descriptor(Ledger), "ledger")


def test_write_stmt_numbering():
    assert write_stmt(2, 3, "INSERT INTO t (a, b, c) VALUES ") == (
        "INSERT INTO t (a, b, c) VALUES ($1,$2,$3),($4,$5,$6)"
    )


def test_write_stmt_single_row():
    assert write_stmt(1, 2, "") == "($1,$2)"


class TestStringToInt:

    @pytest.mark.parametrize("value,expected", [
        ("1500.00", 1500),
        (" 42 ", 42),
        ("-3.99", -3),
        ("7", 7),
        (12.7, 12),
    ])
    def test_parses(self, value, expected):
        assert string_to_int(value) == expected

    @pytest.mark.parametrize("value", ["", "abc", "1,000"])
    def test_rejects(self, value):
        with pytest.raises(ValidationError):
            string_to_int(value)


class TestBulkInserter:

    def test_250_rows_in_three_batches(self, widgets, pooled, conn, fake_pool):
        elements = [Widget(name=f"w{i}") for i in range(250)]

        count = widgets.insert(pooled, elements)

        assert count == 250
        assert len(conn.executed) == 3
        groups = [sql.count("(%s") for sql, _ in conn.executed]
        assert groups == [ROWS_PER_INSERT, ROWS_PER_INSERT, 50]
        assert [len(params) for _, params in conn.executed] == [300, 300, 150]
        assert conn.commits == 3
        assert fake_pool.borrowed == fake_pool.returned == 3

    def test_exact_multiple_has_no_remainder(self, widgets, pooled, conn):
        widgets.insert(pooled, [Widget(name="w")] * 200)
        assert len(conn.executed) == 2

    def test_statement_shape(self, widgets, pooled, conn):
        widgets.insert(pooled, [Widget(name="a"), Widget(name="b")])
        sql, params = conn.executed[0]
        assert sql == (
            'INSERT INTO widgets ("name", "created_at", "updated_at") '
            "VALUES (%s,%s,%s),(%s,%s,%s)"
        )
        assert params[0] == "a" and params[3] == "b"

    def test_shared_timestamp_per_row(self, widgets, pooled, conn):
        widgets.insert(pooled, [Widget(name="a")])
        _, (name, created, updated) = conn.executed[0]
        assert created is updated
        assert created.tzinfo is timezone.utc
        assert datetime.now(timezone.utc) - created < timedelta(seconds=5)

    def test_raw_rows_are_coerced(self, ledger, pooled, conn):
        count = ledger.insert(pooled, [["a", "1500.00"], ("b", " 7 ")])
        assert count == 2
        assert conn.executed[0][1] == ["a", 1500, "b", 7]

    def test_entity_values_are_coerced(self, ledger, pooled, conn):
        ledger.insert(pooled, [Ledger(account="a", amount="12.50")])
        assert conn.executed[0][1] == ["a", 12]

    def test_bad_number_fails_before_sql(self, ledger, pooled, conn):
        with pytest.raises(ValidationError):
            ledger.insert(pooled, [["a", "12"], ["b", "twelve"]])
        assert conn.executed == []

    def test_raw_row_length_checked(self, ledger, pooled):
        with pytest.raises(ValidationError):
            ledger.insert(pooled, [["a"]])

    @pytest.mark.parametrize("elements", [[], ()])
    def test_empty_input(self, widgets, pooled, conn, elements):
        with pytest.raises(ValidationError, match="empty"):
            widgets.insert(pooled, elements)
        assert conn.executed == []

    @pytest.mark.parametrize("elements", [
        "abc",
        {"name": "x"},
        (Widget() for _ in range(2)),
        Widget(),
    ])
    def test_non_sequence_input(self, widgets, pooled, conn, elements):
        with pytest.raises(ValidationError, match="sequence"):
            widgets.insert(pooled, elements)
        assert conn.executed == []

    def test_failure_keeps_earlier_batches(self, widgets, pooled, conn):
        error = psycopg2.OperationalError("connection lost")
        conn.queue(None, error)

        with pytest.raises(psycopg2.OperationalError) as exc:
            widgets.insert(pooled, [Widget(name="w")] * 150)

        assert exc.value is error
        assert len(conn.committed) == 1
        assert conn.rollbacks == 1

    def test_transaction_executor_never_commits(self, widgets, conn):
        count = widgets.insert(TransactionExecutor(conn), [Widget(name="w")] * 120)
        assert count == 120
        assert conn.commits == 0
        assert len(conn.pending) == 2
