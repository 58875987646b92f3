"""Query classification and result containers.

Every execution path shapes its result by the first six characters of the
original template:

- ``SELECT`` returns a :class:`QueryResult`
- ``INSERT`` returns the generated row identifier
- ``UPDATE``, ``DELETE``, ``REPLAC(E)`` and ``LOAD `` return the affected-row count
- ``SET ``, ``LOCK``, ``UNLOCK``, ``CREATE`` and ``DROP`` return ``True``

Anything else is rejected with :class:`~sqldal.exceptions.InvalidQueryTypeError`.
"""

from collections.abc import Iterator, Mapping
from enum import Enum
from typing import Any, Final, Optional, Union

from mypy_extensions import mypyc_attr

from sqldal.exceptions import InvalidQueryTypeError, ResultShapeError

__all__ = (
    "FOUND_ROWS_HINT",
    "FOUND_ROWS_QUERY",
    "ExecutionResult",
    "QueryResult",
    "QueryType",
    "classify_query",
    "ensure_query_result",
    "get_query_type_token",
    "uses_found_rows",
)

QUERY_TYPE_LENGTH: Final = 6
FOUND_ROWS_HINT: Final = "SQL_CALC_FOUND_ROWS"
FOUND_ROWS_HINT_OFFSET: Final = 7
FOUND_ROWS_QUERY: Final = "SELECT FOUND_ROWS()"

_AFFECTED_ROWS_TOKENS: Final = frozenset({"UPDATE", "DELETE", "REPLAC"})
_AFFECTED_ROWS_PREFIXES: Final = ("LOAD ",)
_COMMAND_PREFIXES: Final = ("SET ", "LOCK", "UNLOCK", "CREATE", "DROP")


class QueryType(str, Enum):
    """Result shape selected by a query's leading token."""

    SELECT = "select"
    INSERT = "insert"
    AFFECTED_ROWS = "affected_rows"
    COMMAND = "command"


def get_query_type_token(template: str) -> str:
    """Return the token used for classification (the first six characters)."""
    return template[:QUERY_TYPE_LENGTH]


def classify_query(template: str) -> QueryType:
    """Classify a template by its leading token.

    The comparison is exact and case-sensitive.

    Args:
        template: The original, unsubstituted SQL template.

    Raises:
        InvalidQueryTypeError: The leading token matches no known query class.

    Returns:
        The query type.
    """
    token = get_query_type_token(template)
    if token == "SELECT":
        return QueryType.SELECT
    if token == "INSERT":
        return QueryType.INSERT
    if token in _AFFECTED_ROWS_TOKENS or token.startswith(_AFFECTED_ROWS_PREFIXES):
        return QueryType.AFFECTED_ROWS
    if token.startswith(_COMMAND_PREFIXES):
        return QueryType.COMMAND
    raise InvalidQueryTypeError(token)


def uses_found_rows(template: str) -> bool:
    """Whether ``SQL_CALC_FOUND_ROWS`` directly follows ``SELECT ``."""
    return template.startswith(FOUND_ROWS_HINT, FOUND_ROWS_HINT_OFFSET)


@mypyc_attr(allow_interpreted_subclasses=False)
class QueryResult(Mapping[str, Any]):
    """Rows returned by a SELECT-class query.

    Behaves both as an object (``result.rows``) and as a read-only mapping with
    the keys ``num``, ``rows`` and ``total_rows`` (``result["rows"]``).

    Attributes:
        num: Number of rows in ``rows``.
        rows: Fetched rows, each an independent dict.
        total_rows: ``FOUND_ROWS()`` when the query used ``SQL_CALC_FOUND_ROWS``, else ``num``.
    """

    __slots__ = ("num", "rows", "total_rows")

    _KEYS: Final = ("num", "rows", "total_rows")

    def __init__(self, rows: "list[dict[str, Any]]", total_rows: "Optional[int]" = None) -> None:
        self.rows = rows
        self.num = len(rows)
        self.total_rows = self.num if total_rows is None else total_rows

    def __getitem__(self, key: str) -> Any:
        if key not in self._KEYS:
            raise KeyError(key)
        return getattr(self, key)

    def __iter__(self) -> "Iterator[str]":
        return iter(self._KEYS)

    def __len__(self) -> int:
        return len(self._KEYS)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Mapping):
            return dict(self.items()) == dict(other.items())
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"QueryResult(num={self.num}, total_rows={self.total_rows}, rows={self.rows!r})"

    def get_first(self) -> "Optional[dict[str, Any]]":
        """Get the first row, if any."""
        return self.rows[0] if self.rows else None

    def scalar_or_none(self) -> Any:
        """Return the first column of the first row, or None if there are no rows."""
        row = self.get_first()
        if not row:
            return None
        return next(iter(row.values()))

    def as_dict(self) -> "dict[str, Any]":
        return {"num": self.num, "rows": self.rows, "total_rows": self.total_rows}


ExecutionResult = Union[QueryResult, int, bool]
"""What ``execute``, ``query`` and ``sql`` return."""


def ensure_query_result(result: "ExecutionResult", name: str) -> QueryResult:
    """Narrow an execution result to :class:`QueryResult`.

    Raises:
        ResultShapeError: The statement did not produce rows.
    """
    if isinstance(result, QueryResult):
        return result
    msg = f"{name!r} does not return rows; use the plain execution method instead"
    raise ResultShapeError(msg)
