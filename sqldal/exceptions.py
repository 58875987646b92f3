from typing import Any

__all__ = (
    "CommittingError",
    "ConnectingError",
    "DALError",
    "ExecutingStatementError",
    "ExtraParameterError",
    "ImproperConfigurationError",
    "InvalidQueryTypeError",
    "MissingParameterError",
    "ParameterError",
    "PreparingStatementError",
    "QueryNotFoundError",
    "ResultShapeError",
    "RunningQueryError",
    "SQLFileNotFoundError",
    "SQLFileParseError",
    "UnsupportedPlaceholderError",
)


class DALError(Exception):
    """Base exception class from which all sqldal exceptions inherit."""

    detail: str

    def __init__(self, *args: Any, detail: str = "") -> None:
        """Initialize ``DALError``.

        Args:
            *args: args are converted to :class:`str` before passing to :class:`Exception`
            detail: detail of the exception.
        """
        str_args = [str(arg) for arg in args if arg]
        if not detail:
            if str_args:
                detail, *str_args = str_args
            elif hasattr(self, "detail"):
                detail = self.detail
        self.detail = detail
        super().__init__(*str_args)

    def __repr__(self) -> str:
        if self.detail:
            return f"{self.__class__.__name__} - {self.detail}"
        return self.__class__.__name__

    def __str__(self) -> str:
        return " ".join((*self.args, self.detail)).strip()


class ImproperConfigurationError(DALError):
    """Improper configuration error.

    Raised when cluster topology or credentials are missing or malformed.
    """


# -- Connection and execution errors --
class ConnectingError(DALError):
    """A connection to a cluster's database could not be established."""

    def __init__(self, host: str, db_name: str, error: str) -> None:
        self.host = host
        self.db_name = db_name
        self.error = error
        super().__init__(f"Error connecting to db host: {host}, db name: {db_name}, error: {error}")


class PreparingStatementError(DALError):
    """The server refused to compile a statement."""

    def __init__(self, statement_name: str, error: str, query: str) -> None:
        self.statement_name = statement_name
        self.error = error
        self.query = query
        super().__init__(f"Error preparing statement: {statement_name}, error: {error}, query: {query}")


class ExecutingStatementError(DALError):
    """A prepared statement's execution failed."""

    def __init__(self, statement_name: str, error: str) -> None:
        self.statement_name = statement_name
        self.error = error
        super().__init__(f"Error executing statement: {statement_name}, {error}")


class RunningQueryError(DALError):
    """An emulated or raw query failed, or left a non-zero error code behind."""

    def __init__(self, query: str, error: str) -> None:
        self.query = query
        self.error = error
        super().__init__(f"Error running query: {query}, {error}")


class InvalidQueryTypeError(DALError):
    """The leading SQL token matches none of the supported query classes."""

    def __init__(self, query_type: str) -> None:
        self.query_type = query_type
        super().__init__(f'Queries must start with SELECT, UPDATE, DELETE or INSERT not "{query_type}"')


class CommittingError(DALError):
    """A commit failed; the transaction has been rolled back."""

    def __init__(self, cluster_name: str, error: str) -> None:
        self.cluster_name = cluster_name
        self.error = error
        super().__init__(f"Error committing transaction on cluster: {cluster_name}, {error}")


class ResultShapeError(DALError):
    """A row-returning helper was used on a statement that returns no rows."""


# -- Query catalog errors --
class QueryNotFoundError(DALError):
    """A named query is missing from the catalog."""

    def __init__(self, name: str, suggestions: "list[str] | None" = None) -> None:
        self.name = name
        self.suggestions = suggestions or []
        message = f"Query {name!r} not found in the query catalog"
        if self.suggestions:
            message = f"{message}. Did you mean: {', '.join(self.suggestions)}?"
        super().__init__(message)


class SQLFileNotFoundError(DALError):
    """SQL file not found."""

    def __init__(self, name: str, path: "str | None" = None) -> None:
        message = f"SQL file '{name}' not found at path: {path}" if path else f"SQL file '{name}' not found"
        self.name = name
        self.path = path
        super().__init__(message)


class SQLFileParseError(DALError):
    """Error parsing SQL file."""

    def __init__(self, name: str, path: str, original_error: "Exception") -> None:
        self.name = name
        self.path = path
        self.original_error = original_error
        super().__init__(f"Failed to parse SQL file '{name}' at {path}: {original_error}")


# -- SQL Parameter Errors --
class ParameterError(DALError):
    """Base class for parameter-related errors."""

    sql: "str | None"

    def __init__(self, message: str, sql: "str | None" = None) -> None:
        """Initialize with optional SQL context."""
        detail_message = message
        if sql:
            detail_message = f"{message}\nSQL: {sql}"
        super().__init__(detail=detail_message)
        self.sql = sql


class MissingParameterError(ParameterError):
    """Raised when there are fewer parameters than placeholders."""


class ExtraParameterError(ParameterError):
    """Raised when there are more parameters than placeholders."""


class UnsupportedPlaceholderError(ParameterError):
    """Raised for placeholders a binding mode cannot handle."""
