"""
db/statement.py
---------------
Parameterized statements on top of a psycopg2 cursor.

Repositories write SQL with one of two placeholder styles:
    - named      `:name`          (NamedStatement, bound from a mapping)
    - positional `$1`, `$2`, ...  (PositionalStatement, bound from a sequence)

psycopg2 only understands pyformat (`%(name)s` / `%s`), so both styles are
compiled once, when the statement is created, and reused for every execution.
Literal `%` characters are doubled and `::type` casts are left alone.
"""

from typing import Any, Mapping, Optional, Sequence

from db.errors import BindError, NoRowsError
from utils.logger import get_logger

logger = get_logger(__name__)

NamedArgs = Mapping[str, Any]


def _is_name_char(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


def compile_named(query: str) -> tuple[str, tuple[str, ...]]:
    """
    Rewrite `:name` placeholders as `%(name)s`.

    Returns:
        The pyformat SQL and the placeholder names in order of appearance.
    """
    out: list[str] = []
    names: list[str] = []
    in_quote = False
    i, n = 0, len(query)
    while i < n:
        ch = query[i]
        if ch == "%":
            out.append("%%")
            i += 1
            continue
        if ch == "'":
            in_quote = not in_quote
        elif not in_quote and ch == ":":
            if i + 1 < n and query[i + 1] == ":":
                out.append("::")
                i += 2
                continue
            j = i + 1
            while j < n and _is_name_char(query[j]):
                j += 1
            if j > i + 1:
                name = query[i + 1:j]
                names.append(name)
                out.append(f"%({name})s")
                i = j
                continue
        out.append(ch)
        i += 1
    return "".join(out), tuple(names)


def compile_positional(query: str) -> tuple[str, tuple[int, ...]]:
    """
    Rewrite `$N` placeholders as `%s`.

    Returns:
        The pyformat SQL and the 1-based argument index of every `%s`.
    """
    out: list[str] = []
    order: list[int] = []
    in_quote = False
    i, n = 0, len(query)
    while i < n:
        ch = query[i]
        if ch == "%":
            out.append("%%")
            i += 1
            continue
        if ch == "'":
            in_quote = not in_quote
        elif not in_quote and ch == "$":
            j = i + 1
            while j < n and query[j].isdigit():
                j += 1
            if j > i + 1:
                order.append(int(query[i + 1:j]))
                out.append("%s")
                i = j
                continue
        out.append(ch)
        i += 1
    return "".join(out), tuple(order)


class NamedStatement:
    """A statement using `:name` placeholders, bound from a mapping."""

    def __init__(self, query: str):
        self.query = query
        self.sql, self.names = compile_named(query)

    def bind(self, args: Optional[NamedArgs]) -> dict:
        """
        Check that every placeholder has a value.

        Raises:
            BindError: If a placeholder name is missing from `args`.
        """
        args = {} if args is None else args
        for name in self.names:
            if name not in args:
                raise BindError(f"could not find name {name!r} in argument map")
        return dict(args)

    def _execute(self, cur, args: Optional[NamedArgs]) -> None:
        params = self.bind(args)
        logger.debug(f"SQL: {self.query}")
        cur.execute(self.sql, params)

    def get(self, cur, args: Optional[NamedArgs] = None):
        """
        Run the statement and return its first row.

        Raises:
            NoRowsError: If the statement produced no rows.
        """
        self._execute(cur, args)
        row = cur.fetchone()
        if row is None:
            raise NoRowsError()
        return row

    def select(self, cur, args: Optional[NamedArgs] = None) -> list:
        """Run the statement and return all rows."""
        self._execute(cur, args)
        return cur.fetchall()

    def exec(self, cur, args: Optional[NamedArgs] = None) -> int:
        """Run the statement and return the affected-row count."""
        self._execute(cur, args)
        return cur.rowcount


class PositionalStatement:
    """A statement using `$N` placeholders, bound from a sequence."""

    def __init__(self, query: str):
        self.query = query
        self.sql, self.order = compile_positional(query)

    def bind(self, values: Sequence[Any]) -> list:
        """
        Order `values` to match the compiled `%s` placeholders.

        Raises:
            BindError: If a placeholder index is outside `values`.
        """
        bound = []
        for index in self.order:
            if index < 1 or index > len(values):
                raise BindError(
                    f"placeholder ${index} has no value ({len(values)} values given)"
                )
            bound.append(values[index - 1])
        return bound

    def _execute(self, cur, values: Sequence[Any]) -> None:
        params = self.bind(values)
        logger.debug(f"SQL: {self.query[:200]}")
        cur.execute(self.sql, params)

    def exec(self, cur, values: Sequence[Any] = ()) -> int:
        """Run the statement and return the affected-row count."""
        self._execute(cur, values)
        return cur.rowcount

    def query_rows(self, cur, values: Sequence[Any] = ()) -> list:
        """Run the statement and return all rows."""
        self._execute(cur, values)
        return cur.fetchall()
