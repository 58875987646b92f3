"""Diagnostics aggregation for a :class:`~sqldal.base.DAL` instance."""

from typing import TYPE_CHECKING, Any

from sqldal._serialization import encode_json

if TYPE_CHECKING:
    from sqldal.base import DAL


class DALDiagnostics:
    """Collects query statistics, statement-cache counters and connection stats."""

    __slots__ = ("_dal",)

    def __init__(self, dal: "DAL") -> None:
        self._dal = dal

    def snapshot(self) -> "dict[str, Any]":
        """Return aggregated diagnostics payload."""

        cache_stats = self._dal.get_statement_cache_stats()
        return {
            "queries": {name: entry.as_dict() for name, entry in self._dal.get_statements_stats().items()},
            "statement_cache": {**cache_stats.as_dict(), "size": self._dal.prepared_statement_count},
            "connections": self._dal.get_connection_stats(),
        }

    def to_json(self) -> str:
        return encode_json(self.snapshot())


def collect_diagnostics(dal: "DAL") -> "dict[str, Any]":
    """Convenience helper for snapshotting a DAL without constructing a class."""

    return DALDiagnostics(dal).snapshot()


__all__ = ("DALDiagnostics", "collect_diagnostics")
