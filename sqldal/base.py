"""The data-access service object.

:class:`DAL` owns one connection per cluster, one prepared statement per
``(cluster, statement name)`` and the per-query statistics. Construct it once
and share it::

    dal = DAL(DALConfig.from_mapping(settings), PyMysqlDriver(), QueryCatalog(queries))
    user = dal.execute_row("main", "get_user", 42)
    total = dal.query_value("main", "count_users_by_status", "active")
    dal.sql("main", "SET NAMES utf8mb4")

Three calling conventions are offered:

- ``execute``: true server-side prepared statements
- ``query``: parameters substituted into the SQL text client-side
- ``sql``: raw SQL, no parameters

All three shape their result by the query's leading token; see
:mod:`sqldal.core.result`.
"""

import logging
import time
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Callable, Optional, Union

from mypy_extensions import mypyc_attr

from sqldal.core.cache import CacheStats, StatementCache
from sqldal.core.placeholders import bind_query_params, coerce_parameters, get_params_mask
from sqldal.core.placeholders import convert_array_to_sql_list as _convert_array_to_sql_list
from sqldal.core.placeholders import escape_string as _escape_string
from sqldal.core.result import (
    FOUND_ROWS_QUERY,
    ExecutionResult,
    QueryResult,
    QueryType,
    classify_query,
    ensure_query_result,
    uses_found_rows,
)
from sqldal.driver.protocols import DriverError
from sqldal.driver.registry import ConnectionRegistry
from sqldal.exceptions import CommittingError, DALError, ExecutingStatementError, RunningQueryError
from sqldal.loader import QueryCatalog
from sqldal.observability import StatsRecorder
from sqldal.utils.logging import EXECUTOR_LOGGER_NAME, get_logger, log_with_context

if TYPE_CHECKING:
    from collections.abc import Iterable
    from types import TracebackType

    from sqldal.config import DALConfig
    from sqldal.driver.protocols import Driver, DriverConnection
    from sqldal.observability import StatsEntry
    from sqldal.typing import DictRow

__all__ = ("DAL",)

logger = get_logger(EXECUTOR_LOGGER_NAME)


@mypyc_attr(allow_interpreted_subclasses=False)
class DAL:
    """Data-access layer over a set of named database clusters."""

    __slots__ = ("_catalog", "_config", "_registry", "_statements", "_stats")

    def __init__(
        self,
        config: "DALConfig",
        driver: "Driver",
        catalog: "Optional[Union[QueryCatalog, Mapping[str, str]]]" = None,
    ) -> None:
        """Initialize the data-access layer.

        No connection is opened until a cluster is first used.

        Args:
            config: Cluster topology and credentials.
            driver: Opens connections to the clusters.
            catalog: Named templates used by ``execute`` and ``query``.
        """
        self._config = config
        self._catalog = catalog if isinstance(catalog, QueryCatalog) else QueryCatalog(catalog)
        self._registry = ConnectionRegistry(config, driver)
        self._statements = StatementCache(self._registry, self._catalog)
        self._stats = StatsRecorder()

    def __enter__(self) -> "DAL":
        return self

    def __exit__(
        self,
        exc_type: "Optional[type[BaseException]]",
        exc_val: "Optional[BaseException]",
        exc_tb: "Optional[TracebackType]",
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"DAL(clusters={sorted(self._config.clusters)!r}, connected={self._registry.connected_clusters!r})"

    @property
    def config(self) -> "DALConfig":
        return self._config

    @property
    def catalog(self) -> QueryCatalog:
        return self._catalog

    @property
    def stats(self) -> StatsRecorder:
        return self._stats

    @property
    def prepared_statement_count(self) -> int:
        return len(self._statements)

    # -- execution paths --
    def execute(self, cluster_name: str, statement_name: str, *parameters: Any) -> ExecutionResult:
        """Run a named template as a server-side prepared statement.

        The statement is prepared on first use and reused afterwards. Values are
        coerced to the types their placeholders declare before binding.

        Args:
            cluster_name: Cluster to run on.
            statement_name: Name of the template in the query catalog.
            *parameters: One value per placeholder, in order.

        Raises:
            QueryNotFoundError: The name is not in the catalog.
            InvalidQueryTypeError: The template's leading token is not supported.
            ParameterError: The values do not match the placeholders.
            ConnectingError: The cluster is unreachable.
            PreparingStatementError: The server rejected the statement.
            ExecutingStatementError: The execution failed.
            RunningQueryError: The driver reported an error after executing.

        Returns:
            A :class:`QueryResult` for SELECT, the insert id for INSERT, the
            affected-row count for UPDATE/DELETE/REPLACE/LOAD and ``True`` for
            administrative statements.
        """
        template = self._catalog.get_sql(statement_name)
        query_type = classify_query(template)
        values = coerce_parameters(get_params_mask(template), parameters, template)

        connection = self._registry.get_connection(cluster_name)
        # The connection lock is always taken before a statement's creation lock.
        with connection.lock:
            statement = self._statements.get_statement(cluster_name, statement_name)
            handle = statement.handle
            start = time.perf_counter()
            try:
                if statement.params_mask:
                    handle.bind(statement.params_mask, values)
                handle.execute()
            except DriverError as exc:
                raise ExecutingStatementError(statement_name, str(exc)) from exc
            try:
                if handle.error_code:
                    raise RunningQueryError(template, handle.error_message)
                result = self._shape_result(
                    query_type,
                    template,
                    rows=handle.fetch_rows if query_type is QueryType.SELECT else None,
                    insert_id=handle.insert_id,
                    affected_rows=handle.affected_rows,
                    driver_connection=connection.driver_connection,
                )
            finally:
                if query_type is QueryType.SELECT:
                    handle.free_result()
        self._record(cluster_name, statement_name, time.perf_counter() - start, "statement")
        return result

    def query(self, cluster_name: str, query_name: str, *parameters: Any) -> ExecutionResult:
        """Run a named template with parameters substituted client-side.

        Unlike :meth:`execute`, templates may use ``%a`` to expand a list.

        Args:
            cluster_name: Cluster to run on.
            query_name: Name of the template in the query catalog.
            *parameters: One value per placeholder, in order.

        Raises:
            QueryNotFoundError: The name is not in the catalog.
            InvalidQueryTypeError: The template's leading token is not supported.
            ParameterError: The values do not match the placeholders.
            ConnectingError: The cluster is unreachable.
            RunningQueryError: The query failed.

        Returns:
            The shaped result, as for :meth:`execute`.
        """
        template = self._catalog.get_sql(query_name)
        query_type = classify_query(template)
        sql = bind_query_params(template, parameters)
        return self._run_query(cluster_name, query_name, template, sql, query_type)

    def sql(self, cluster_name: str, raw_sql: str) -> ExecutionResult:
        """Run raw SQL.

        Statistics are recorded under the SQL text itself.

        Raises:
            InvalidQueryTypeError: The leading token is not supported.
            ConnectingError: The cluster is unreachable.
            RunningQueryError: The query failed.

        Returns:
            The shaped result, as for :meth:`execute`.
        """
        query_type = classify_query(raw_sql)
        return self._run_query(cluster_name, raw_sql, raw_sql, raw_sql, query_type)

    def _run_query(
        self, cluster_name: str, stats_name: str, template: str, sql: str, query_type: QueryType
    ) -> ExecutionResult:
        connection = self._registry.get_connection(cluster_name)
        driver_connection = connection.driver_connection
        with connection.lock:
            start = time.perf_counter()
            try:
                rows = driver_connection.query(sql)
            except DriverError as exc:
                raise RunningQueryError(sql, str(exc)) from exc
            if driver_connection.error_code:
                raise RunningQueryError(sql, driver_connection.error_message)
            result = self._shape_result(
                query_type,
                template,
                rows=lambda: rows or [],
                insert_id=driver_connection.insert_id,
                affected_rows=driver_connection.affected_rows,
                driver_connection=driver_connection,
            )
        self._record(cluster_name, stats_name, time.perf_counter() - start, "query")
        return result

    @staticmethod
    def _shape_result(
        query_type: QueryType,
        template: str,
        *,
        rows: "Optional[Callable[[], Iterable[Mapping[str, Any]]]]",
        insert_id: int,
        affected_rows: int,
        driver_connection: "DriverConnection",
    ) -> ExecutionResult:
        if query_type is QueryType.INSERT:
            return insert_id
        if query_type is QueryType.AFFECTED_ROWS:
            return affected_rows
        if query_type is QueryType.COMMAND:
            return True

        fetched = [dict(row) for row in rows()] if rows is not None else []
        total_rows: Optional[int] = None
        if uses_found_rows(template):
            try:
                found = driver_connection.query(FOUND_ROWS_QUERY)
            except DriverError as exc:
                raise RunningQueryError(FOUND_ROWS_QUERY, str(exc)) from exc
            if found:
                total_rows = int(next(iter(found[0].values())))
        return QueryResult(fetched, total_rows=total_rows)

    def _record(self, cluster_name: str, name: str, elapsed: float, kind: str) -> None:
        self._stats.record(name, elapsed)
        log_with_context(
            logger,
            logging.DEBUG,
            f"Executed {kind}",
            cluster=cluster_name,
            name=name,
            elapsed_ms=round(elapsed * 1000, 3),
        )

    # -- convenience wrappers --
    def execute_value(self, cluster_name: str, statement_name: str, *parameters: Any) -> Any:
        """Return the first column of the first row, or None."""
        result = self.execute(cluster_name, statement_name, *parameters)
        return ensure_query_result(result, statement_name).scalar_or_none()

    def execute_row(self, cluster_name: str, statement_name: str, *parameters: Any) -> "Optional[DictRow]":
        """Return the first row, or None."""
        result = self.execute(cluster_name, statement_name, *parameters)
        return ensure_query_result(result, statement_name).get_first()

    def execute_rows(self, cluster_name: str, statement_name: str, *parameters: Any) -> "list[DictRow]":
        """Return all rows."""
        result = self.execute(cluster_name, statement_name, *parameters)
        return ensure_query_result(result, statement_name).rows

    def query_value(self, cluster_name: str, query_name: str, *parameters: Any) -> Any:
        result = self.query(cluster_name, query_name, *parameters)
        return ensure_query_result(result, query_name).scalar_or_none()

    def query_row(self, cluster_name: str, query_name: str, *parameters: Any) -> "Optional[DictRow]":
        result = self.query(cluster_name, query_name, *parameters)
        return ensure_query_result(result, query_name).get_first()

    def query_rows(self, cluster_name: str, query_name: str, *parameters: Any) -> "list[DictRow]":
        result = self.query(cluster_name, query_name, *parameters)
        return ensure_query_result(result, query_name).rows

    def sql_value(self, cluster_name: str, raw_sql: str) -> Any:
        return ensure_query_result(self.sql(cluster_name, raw_sql), raw_sql).scalar_or_none()

    def sql_row(self, cluster_name: str, raw_sql: str) -> "Optional[DictRow]":
        return ensure_query_result(self.sql(cluster_name, raw_sql), raw_sql).get_first()

    def sql_rows(self, cluster_name: str, raw_sql: str) -> "list[DictRow]":
        return ensure_query_result(self.sql(cluster_name, raw_sql), raw_sql).rows

    # -- transactions --
    def start_transaction(self, cluster_name: str) -> None:
        """Turn autocommit off; statements run until :meth:`commit` form one transaction."""
        self._set_autocommit(cluster_name, enabled=False)

    def finish_transaction(self, cluster_name: str) -> None:
        """Turn autocommit back on."""
        self._set_autocommit(cluster_name, enabled=True)

    def _set_autocommit(self, cluster_name: str, *, enabled: bool) -> None:
        connection = self._registry.get_connection(cluster_name)
        with connection.lock:
            try:
                connection.driver_connection.set_autocommit(enabled)
            except DriverError as exc:
                raise RunningQueryError(f"SET autocommit = {int(enabled)}", str(exc)) from exc

    def rollback(self, cluster_name: str) -> None:
        connection = self._registry.get_connection(cluster_name)
        with connection.lock:
            try:
                connection.driver_connection.rollback()
            except DriverError as exc:
                raise RunningQueryError("ROLLBACK", str(exc)) from exc
        logger.debug("Rolled back transaction on cluster %s", cluster_name)

    def commit(self, cluster_name: str) -> None:
        """Commit the current transaction.

        Raises:
            CommittingError: The commit failed. The transaction has been rolled
                back before this is raised.
        """
        connection = self._registry.get_connection(cluster_name)
        with connection.lock:
            driver_connection = connection.driver_connection
            try:
                driver_connection.commit()
            except DriverError as exc:
                try:
                    driver_connection.rollback()
                except DriverError:
                    logger.warning("Rollback after failed commit on cluster %s failed", cluster_name, exc_info=True)
                raise CommittingError(cluster_name, str(exc)) from exc

    @contextmanager
    def transaction(self, cluster_name: str) -> "Iterator[DAL]":
        """Run the block in a transaction.

        Commits when the block completes, rolls back when it raises and
        restores autocommit in both cases. Other threads cannot use the
        cluster's connection while the block runs.

        Example:
            ```python
            with dal.transaction("main"):
                dal.execute("main", "debit_account", 1, 100)
                dal.execute("main", "credit_account", 2, 100)
            ```
        """
        connection = self._registry.get_connection(cluster_name)
        with connection.lock:
            self.start_transaction(cluster_name)
            try:
                yield self
            except BaseException:
                try:
                    self.rollback(cluster_name)
                except DALError:
                    logger.warning("Rollback on cluster %s failed", cluster_name, exc_info=True)
                self._finish_after_error(cluster_name)
                raise
            try:
                self.commit(cluster_name)
            except CommittingError:
                self._finish_after_error(cluster_name)
                raise
            self.finish_transaction(cluster_name)

    def _finish_after_error(self, cluster_name: str) -> None:
        """Restore autocommit without masking the error already propagating."""
        try:
            self.finish_transaction(cluster_name)
        except DALError:
            logger.warning("Restoring autocommit on cluster %s failed", cluster_name, exc_info=True)

    # -- escaping helpers --
    @staticmethod
    def escape_string(value: str) -> str:
        """Escape ``value`` for inclusion in a single- or double-quoted SQL literal."""
        return _escape_string(value)

    @staticmethod
    def convert_array_to_sql_list(items: "Iterable[Any]") -> str:
        """Render ``items`` as a parenthesized SQL list, e.g. for ``IN (...)``."""
        return _convert_array_to_sql_list(items)

    # -- statistics and lifecycle --
    def get_statements_stats(self) -> "dict[str, StatsEntry]":
        """Invocation count and cumulative time per statement, query or raw SQL text."""
        return self._stats.get_stats()

    def get_statement_cache_stats(self) -> CacheStats:
        return self._statements.get_stats()

    def get_connection_stats(self) -> "dict[str, dict[str, Any]]":
        """Driver statistics of every open connection, keyed by cluster name."""
        return self._registry.get_connection_stats()

    def close(self) -> None:
        """Deallocate prepared statements and close every connection.

        The instance can be used again afterwards; it reconnects lazily.
        """
        self._statements.close()
        self._registry.close()
