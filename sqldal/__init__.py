"""sqldal: a data-access layer for MySQL-compatible clusters."""

from sqldal import adapters, base, core, driver, exceptions, loader, observability, typing, utils
from sqldal.__metadata__ import __version__
from sqldal.base import DAL
from sqldal.config import ClusterConfig, ClusterConfigDict, DALConfig, DALConfigDict
from sqldal.core.cache import CacheStats
from sqldal.core.placeholders import bind_query_params, convert_array_to_sql_list, escape_string
from sqldal.core.result import ExecutionResult, QueryResult
from sqldal.driver import Driver, DriverConnection, DriverError, DriverStatement
from sqldal.exceptions import (
    CommittingError,
    ConnectingError,
    DALError,
    ExecutingStatementError,
    ImproperConfigurationError,
    InvalidQueryTypeError,
    ParameterError,
    PreparingStatementError,
    QueryNotFoundError,
    ResultShapeError,
    RunningQueryError,
)
from sqldal.loader import QueryCatalog
from sqldal.observability import StatsEntry, StatsRecorder, collect_diagnostics
from sqldal.typing import DictRow, StatementParameters

__all__ = (
    "DAL",
    "CacheStats",
    "ClusterConfig",
    "ClusterConfigDict",
    "CommittingError",
    "ConnectingError",
    "DALConfig",
    "DALConfigDict",
    "DALError",
    "DictRow",
    "Driver",
    "DriverConnection",
    "DriverError",
    "DriverStatement",
    "ExecutingStatementError",
    "ExecutionResult",
    "ImproperConfigurationError",
    "InvalidQueryTypeError",
    "ParameterError",
    "PreparingStatementError",
    "QueryCatalog",
    "QueryNotFoundError",
    "QueryResult",
    "ResultShapeError",
    "RunningQueryError",
    "StatementParameters",
    "StatsEntry",
    "StatsRecorder",
    "__version__",
    "adapters",
    "base",
    "bind_query_params",
    "collect_diagnostics",
    "convert_array_to_sql_list",
    "core",
    "driver",
    "escape_string",
    "exceptions",
    "loader",
    "observability",
    "typing",
    "utils",
)
