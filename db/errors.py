"""
db/errors.py
------------
Errors raised by the data layer itself.

Driver failures (psycopg2.Error and its subclasses) are never wrapped;
they reach the caller exactly as psycopg2 raised them.
"""


class RepositoryError(Exception):
    """Base class for errors raised before or after the driver is called."""


class ValidationError(RepositoryError, ValueError):
    """Input rejected before any SQL is issued."""


class BindError(RepositoryError, KeyError):
    """A placeholder in a statement has no matching argument."""

    def __str__(self) -> str:
        # KeyError would repr() the message
        return str(self.args[0]) if self.args else ""


class DecodeError(RepositoryError, TypeError):
    """A result row does not fit the destination entity."""


class NoRowsError(RepositoryError, LookupError):
    """A single-row read matched no rows."""

    def __init__(self, message: str = "no rows in result set"):
        super().__init__(message)
