"""Public observability exports."""

from sqldal.observability._diagnostics import DALDiagnostics, collect_diagnostics
from sqldal.observability._stats import StatsEntry, StatsRecorder

__all__ = ("DALDiagnostics", "StatsEntry", "StatsRecorder", "collect_diagnostics")
