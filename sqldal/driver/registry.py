"""One live connection per configured cluster."""

import threading
import time
from typing import TYPE_CHECKING, Any, Optional

from mypy_extensions import mypyc_attr

from sqldal.core.cache import KeyedCache
from sqldal.driver.protocols import DriverError
from sqldal.exceptions import ConnectingError
from sqldal.utils.logging import CONNECTION_LOGGER_NAME, get_logger

if TYPE_CHECKING:
    from sqldal.config import DALConfig
    from sqldal.driver.protocols import Driver, DriverConnection

__all__ = ("ConnectionRegistry", "ManagedConnection")

logger = get_logger(CONNECTION_LOGGER_NAME)


@mypyc_attr(allow_interpreted_subclasses=False)
class ManagedConnection:
    """A driver connection paired with the lock that serializes its use.

    Every interaction with ``driver_connection`` must hold ``lock``; a
    connection runs at most one statement at a time. The lock is re-entrant so
    a transaction helper can hold it across several calls.
    """

    __slots__ = ("cluster_name", "connected_at", "driver_connection", "lock")

    def __init__(self, cluster_name: str, driver_connection: "DriverConnection") -> None:
        self.cluster_name = cluster_name
        self.driver_connection = driver_connection
        self.lock = threading.RLock()
        self.connected_at = time.time()

    def __repr__(self) -> str:
        return f"ManagedConnection(cluster_name={self.cluster_name!r})"


@mypyc_attr(allow_interpreted_subclasses=False)
class ConnectionRegistry:
    """Lazily connects to clusters and keeps the connections for reuse."""

    __slots__ = ("_config", "_connections", "_driver")

    def __init__(self, config: "DALConfig", driver: "Driver") -> None:
        self._config = config
        self._driver = driver
        self._connections: KeyedCache[ManagedConnection] = KeyedCache()

    @property
    def config(self) -> "DALConfig":
        return self._config

    def get_connection(self, cluster_name: str) -> ManagedConnection:
        """Return the cluster's connection, connecting on first use.

        Concurrent first calls for the same cluster open exactly one connection.

        Args:
            cluster_name: Name of a configured cluster.

        Raises:
            ImproperConfigurationError: The cluster is not configured.
            ConnectingError: The driver could not connect.

        Returns:
            The managed connection.
        """
        return self._connections.get_or_create(cluster_name, lambda: self._connect(cluster_name))

    def get_cached_connection(self, cluster_name: str) -> "Optional[ManagedConnection]":
        """Return the cluster's connection if one is open, without connecting."""
        return self._connections.get(cluster_name)

    def _connect(self, cluster_name: str) -> ManagedConnection:
        cluster = self._config.get_cluster(cluster_name)
        logger.debug("Connecting to cluster %s at %s:%s/%s", cluster_name, cluster.host, cluster.port, cluster.db_name)
        try:
            driver_connection = self._driver.connect(
                host=cluster.host,
                user=self._config.user,
                password=self._config.password,
                database=cluster.db_name,
                port=cluster.port,
                connect_timeout=self._config.connect_timeout,
            )
        except DriverError as exc:
            raise ConnectingError(cluster.host, cluster.db_name, str(exc)) from exc
        logger.info("Connected to cluster %s (%s/%s)", cluster_name, cluster.host, cluster.db_name)
        return ManagedConnection(cluster_name, driver_connection)

    @property
    def connected_clusters(self) -> "list[str]":
        return sorted(str(name) for name, _ in self._connections.items())

    def get_connection_stats(self) -> "dict[str, dict[str, Any]]":
        """Driver statistics of every open connection, keyed by cluster name."""
        stats: dict[str, dict[str, Any]] = {}
        for name, managed in self._connections.items():
            with managed.lock:
                stats[str(name)] = managed.driver_connection.get_stats()
        return stats

    def close(self) -> None:
        """Close every open connection."""
        for name, managed in self._connections.pop_all():
            with managed.lock:
                try:
                    managed.driver_connection.close()
                except DriverError:
                    logger.warning("Failed to close connection to cluster %s", name, exc_info=True)
                else:
                    logger.debug("Closed connection to cluster %s", name)

    def __contains__(self, cluster_name: object) -> bool:
        return cluster_name in self._connections

    def __len__(self) -> int:
        return len(self._connections)
