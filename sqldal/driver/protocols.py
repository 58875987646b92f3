"""Driver capability consumed by the query executor.

Adapters wrap a concrete database client behind these protocols. They report
failures by raising :class:`DriverError`; the executor translates it into the
matching :class:`~sqldal.exceptions.DALError` subclass.
"""

from collections.abc import Sequence
from typing import Any, Optional, Protocol, runtime_checkable

__all__ = ("Driver", "DriverConnection", "DriverError", "DriverStatement")


class DriverError(Exception):
    """Failure reported by a database driver.

    Attributes:
        message: Driver error text.
        code: Server or client error number, 0 when unknown.
    """

    def __init__(self, message: str, code: int = 0) -> None:
        super().__init__(message)
        self.message = message
        self.code = code

    def __str__(self) -> str:
        if self.code:
            return f"({self.code}) {self.message}"
        return self.message


@runtime_checkable
class DriverStatement(Protocol):
    """A server-side prepared statement."""

    @property
    def affected_rows(self) -> int:
        """Rows changed by the last execution."""
        ...

    @property
    def insert_id(self) -> int:
        """Identifier generated by the last INSERT."""
        ...

    @property
    def error_code(self) -> int:
        """Error number left by the last execution, 0 if none."""
        ...

    @property
    def error_message(self) -> str:
        """Error text left by the last execution."""
        ...

    def bind(self, params_mask: str, parameters: "Sequence[Any]") -> None:
        """Bind positional parameters typed by ``params_mask``."""
        ...

    def execute(self) -> None:
        """Execute with the currently bound parameters."""
        ...

    def fetch_rows(self) -> "list[dict[str, Any]]":
        """Return the rows of the last execution keyed by column name."""
        ...

    def free_result(self) -> None:
        """Release the buffered result of the last execution."""
        ...

    def close(self) -> None:
        """Deallocate the statement on the server."""
        ...


@runtime_checkable
class DriverConnection(Protocol):
    """A live session to one database."""

    @property
    def affected_rows(self) -> int:
        """Rows changed by the last query."""
        ...

    @property
    def insert_id(self) -> int:
        """Identifier generated by the last INSERT."""
        ...

    @property
    def error_code(self) -> int:
        """Error number left by the last query, 0 if none."""
        ...

    @property
    def error_message(self) -> str:
        """Error text left by the last query."""
        ...

    def prepare(self, sql: str) -> DriverStatement:
        """Compile ``sql`` (using positional ``?`` markers) on the server."""
        ...

    def query(self, sql: str) -> "Optional[list[dict[str, Any]]]":
        """Run literal SQL; return its rows, or None when it produced no result set."""
        ...

    def set_autocommit(self, enabled: bool) -> None:
        """Toggle autocommit mode."""
        ...

    def commit(self) -> None:
        """Commit the current transaction."""
        ...

    def rollback(self) -> None:
        """Roll back the current transaction."""
        ...

    def get_stats(self) -> "dict[str, Any]":
        """Driver-level connection statistics."""
        ...

    def close(self) -> None:
        """Close the session."""
        ...


@runtime_checkable
class Driver(Protocol):
    """Factory for :class:`DriverConnection` objects."""

    def connect(
        self, *, host: str, user: str, password: str, database: str, port: int, connect_timeout: float
    ) -> DriverConnection:
        """Open a connection.

        Implementations must return integer and float columns as native
        Python numbers rather than strings.
        """
        ...
