"""Cluster topology and credentials.

A cluster is a named database target (host plus database name). All clusters
share one set of credentials and one connect timeout, mirroring a typical
bootstrap configuration::

    DALConfig.from_mapping({
        "user": "app",
        "password": "secret",
        "connect_timeout": 5,
        "clusters": {
            "main": {"host": "db1.internal", "db_name": "main"},
            "stats": {"host": "db2.internal", "db_name": "stats", "port": 3307},
        },
    })
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Final, TypedDict

from typing_extensions import NotRequired

from sqldal.exceptions import ImproperConfigurationError
from sqldal.utils.logging import get_logger

__all__ = ("ClusterConfig", "ClusterConfigDict", "DALConfig", "DALConfigDict")

logger = get_logger("config")

DEFAULT_PORT: Final = 3306
DEFAULT_CONNECT_TIMEOUT: Final = 5.0


class ClusterConfigDict(TypedDict):
    """Raw cluster entry."""

    host: str
    """Database server host name."""

    db_name: str
    """Database (schema) to select after connecting."""

    port: NotRequired[int]
    """TCP port of the server."""


class DALConfigDict(TypedDict):
    """Raw configuration mapping accepted by :meth:`DALConfig.from_mapping`."""

    user: str
    """User name shared by all clusters."""

    password: NotRequired[str]
    """Password shared by all clusters."""

    connect_timeout: NotRequired[float]
    """Seconds to wait while establishing a connection."""

    clusters: "Mapping[str, ClusterConfigDict]"
    """Cluster name to cluster entry."""


@dataclass(frozen=True, slots=True)
class ClusterConfig:
    """Immutable description of one cluster."""

    name: str
    host: str
    db_name: str
    port: int = DEFAULT_PORT


class DALConfig:
    """Process-wide database configuration."""

    __slots__ = ("clusters", "connect_timeout", "password", "user")

    def __init__(
        self,
        *,
        user: str,
        password: str = "",
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        clusters: "Mapping[str, ClusterConfig] | None" = None,
    ) -> None:
        """Initialize the configuration.

        Args:
            user: User name shared by all clusters.
            password: Password shared by all clusters.
            connect_timeout: Seconds to wait while establishing a connection.
            clusters: Cluster name to cluster description.
        """
        if connect_timeout <= 0:
            msg = f"connect_timeout must be positive, got {connect_timeout!r}"
            raise ImproperConfigurationError(msg)
        self.user = user
        self.password = password
        self.connect_timeout = connect_timeout
        self.clusters: dict[str, ClusterConfig] = dict(clusters or {})
        for name, cluster in self.clusters.items():
            if name != cluster.name:
                msg = f"Cluster registered as {name!r} is named {cluster.name!r}"
                raise ImproperConfigurationError(msg)

    def __repr__(self) -> str:
        return (
            f"DALConfig(user={self.user!r}, connect_timeout={self.connect_timeout!r}, "
            f"clusters={sorted(self.clusters)!r})"
        )

    @classmethod
    def from_mapping(cls, data: "Mapping[str, Any]") -> "DALConfig":
        """Build a configuration from a plain mapping.

        Args:
            data: Mapping shaped like :class:`DALConfigDict`.

        Raises:
            ImproperConfigurationError: Required keys are missing or malformed.

        Returns:
            The configuration.
        """
        if "user" not in data:
            msg = "Database configuration requires a 'user'"
            raise ImproperConfigurationError(msg)
        raw_clusters = data.get("clusters")
        if not isinstance(raw_clusters, Mapping):
            msg = "Database configuration requires a 'clusters' mapping"
            raise ImproperConfigurationError(msg)

        clusters: dict[str, ClusterConfig] = {}
        for name, entry in raw_clusters.items():
            if not isinstance(entry, Mapping):
                msg = f"Cluster {name!r} must be a mapping, got {type(entry).__name__}"
                raise ImproperConfigurationError(msg)
            missing = [key for key in ("host", "db_name") if not entry.get(key)]
            if missing:
                msg = f"Cluster {name!r} is missing: {', '.join(missing)}"
                raise ImproperConfigurationError(msg)
            clusters[name] = ClusterConfig(
                name=name, host=str(entry["host"]), db_name=str(entry["db_name"]), port=int(entry.get("port", DEFAULT_PORT))
            )

        config = cls(
            user=str(data["user"]),
            password=str(data.get("password", "")),
            connect_timeout=float(data.get("connect_timeout", DEFAULT_CONNECT_TIMEOUT)),
            clusters=clusters,
        )
        logger.debug("Loaded database configuration with clusters: %s", ", ".join(sorted(clusters)))
        return config

    def get_cluster(self, cluster_name: str) -> ClusterConfig:
        """Resolve a cluster by name.

        Raises:
            ImproperConfigurationError: The cluster is not configured.
        """
        try:
            return self.clusters[cluster_name]
        except KeyError:
            msg = f"Cluster {cluster_name!r} is not configured"
            raise ImproperConfigurationError(msg) from None
