"""
repositories/base.py
--------------------
Contract shared by every generic repository implementation.
"""

from abc import ABC, abstractmethod
from typing import Any, Generic, Iterable, Optional, Sequence, TypeVar

from db.context import ExecutionContext
from db.statement import NamedArgs

T = TypeVar("T")


class GenericRepository(ABC, Generic[T]):
    """
    CRUD over one table for one entity type.

    Every method takes the caller's ExecutionContext first; a context that
    carries a transaction makes the call part of that transaction.
    """

    @abstractmethod
    def find_by_id(self, ctx: Optional[ExecutionContext], id: Any) -> T: ...

    @abstractmethod
    def single(self, ctx: Optional[ExecutionContext], where: str, args: Optional[NamedArgs] = None) -> T: ...

    @abstractmethod
    def where(self, ctx: Optional[ExecutionContext], where: str, args: Optional[NamedArgs] = None) -> list[T]: ...

    @abstractmethod
    def select_all(
        self, ctx: Optional[ExecutionContext], order_by: str, limit: str, args: Optional[NamedArgs] = None
    ) -> list[T]: ...

    @abstractmethod
    def insert(self, ctx: Optional[ExecutionContext], elem: T) -> T: ...

    @abstractmethod
    def insert_bulk(self, ctx: Optional[ExecutionContext], elements: Sequence) -> None: ...

    @abstractmethod
    def insert_bulk_with_count(self, ctx: Optional[ExecutionContext], elements: Sequence) -> int: ...

    @abstractmethod
    def update(
        self, ctx: Optional[ExecutionContext], fields: str, where: str, args: Optional[NamedArgs] = None
    ) -> int: ...

    @abstractmethod
    def delete(self, ctx: Optional[ExecutionContext], where: str, args: Optional[NamedArgs] = None) -> int: ...

    @abstractmethod
    def permanent_delete(self, ctx: Optional[ExecutionContext], where: str, args: Optional[NamedArgs]) -> int: ...

    @abstractmethod
    def custom_query(
        self, ctx: Optional[ExecutionContext], stmt: str, args: Sequence[Any] = ()
    ) -> list[list]: ...

    @abstractmethod
    def custom_any_query(self, ctx: Optional[ExecutionContext], stmt: str, arg: Iterable[Any]) -> list[list]: ...
