"""Create-once caches for connections and prepared statements.

Components:
- CacheKey: Immutable cache key
- CacheStats: Hit and miss counters
- KeyedCache: Map whose values are built at most once per key
- StatementCache: Prepared statements keyed by cluster and statement name

Entries are never evicted. Lookups of a published entry take no lock; the
first lookup of a key builds the value under a lock dedicated to that key, so
slow builds for different keys do not serialize each other.
"""

import logging
import threading
from typing import TYPE_CHECKING, Any, Callable, Final, Generic, NamedTuple, Optional

from mypy_extensions import mypyc_attr
from typing_extensions import TypeVar

from sqldal.core.placeholders import DEFAULT_MARKER, CompiledStatement, compile_statement
from sqldal.driver.protocols import DriverError, DriverStatement
from sqldal.exceptions import PreparingStatementError
from sqldal.utils.logging import STATEMENT_LOGGER_NAME, get_logger, log_with_context

if TYPE_CHECKING:
    from collections.abc import Hashable

    from sqldal.driver.registry import ConnectionRegistry
    from sqldal.loader import QueryCatalog

__all__ = ("CacheKey", "CacheStats", "CachedStatement", "KeyedCache", "StatementCache")

logger = get_logger(STATEMENT_LOGGER_NAME)

CacheValueT = TypeVar("CacheValueT")

CACHE_STATS_SLOTS: Final = ("hits", "misses", "total_operations")


@mypyc_attr(allow_interpreted_subclasses=False)
class CacheKey:
    """Immutable cache key.

    Args:
        key_data: Tuple of hashable values that uniquely identify the cached item
    """

    __slots__ = ("_hash", "_key_data")

    def __init__(self, key_data: "tuple[Any, ...]") -> None:
        self._key_data = key_data
        self._hash = hash(key_data)

    @property
    def key_data(self) -> "tuple[Any, ...]":
        """Get the key data tuple."""
        return self._key_data

    def __hash__(self) -> int:
        return self._hash

    def __eq__(self, other: object) -> bool:
        if type(other) is not CacheKey:
            return False
        if self._hash != other._hash:
            return False
        return self._key_data == other._key_data

    def __repr__(self) -> str:
        return f"CacheKey({self._key_data!r})"


@mypyc_attr(allow_interpreted_subclasses=False)
class CacheStats:
    """Cache statistics tracking."""

    __slots__ = CACHE_STATS_SLOTS

    def __init__(self) -> None:
        self.hits = 0
        self.misses = 0
        self.total_operations = 0

    @property
    def hit_rate(self) -> float:
        """Calculate cache hit rate as percentage."""
        total = self.hits + self.misses
        return (self.hits / total * 100) if total > 0 else 0.0

    def record_hit(self) -> None:
        self.hits += 1
        self.total_operations += 1

    def record_miss(self) -> None:
        self.misses += 1
        self.total_operations += 1

    def reset(self) -> None:
        self.hits = 0
        self.misses = 0
        self.total_operations = 0

    def as_dict(self) -> "dict[str, Any]":
        return {"hits": self.hits, "misses": self.misses, "hit_rate": self.hit_rate}

    def __repr__(self) -> str:
        return f"CacheStats(hit_rate={self.hit_rate:.1f}%, hits={self.hits}, misses={self.misses})"


@mypyc_attr(allow_interpreted_subclasses=False)
class KeyedCache(Generic[CacheValueT]):
    """Map whose values are created at most once per key.

    A factory that raises publishes nothing; the next lookup of that key
    calls a factory again.
    """

    __slots__ = ("_creation_locks", "_entries", "_lock", "_stats")

    def __init__(self) -> None:
        self._entries: "dict[Hashable, CacheValueT]" = {}
        self._creation_locks: "dict[Hashable, threading.Lock]" = {}
        self._lock = threading.Lock()
        self._stats = CacheStats()

    def get_or_create(self, key: "Hashable", factory: "Callable[[], CacheValueT]") -> CacheValueT:
        """Return the value for ``key``, building it with ``factory`` on first use.

        Args:
            key: Cache key.
            factory: Builds the value; called at most once per successful key.

        Returns:
            The cached value.
        """
        value = self._entries.get(key)
        if value is not None:
            with self._lock:
                self._stats.record_hit()
            return value

        with self._lock:
            creation_lock = self._creation_locks.setdefault(key, threading.Lock())

        with creation_lock:
            value = self._entries.get(key)
            if value is not None:
                with self._lock:
                    self._stats.record_hit()
                return value
            value = factory()
            with self._lock:
                self._entries[key] = value
                self._creation_locks.pop(key, None)
                self._stats.record_miss()
            return value

    def get(self, key: "Hashable") -> "Optional[CacheValueT]":
        return self._entries.get(key)

    def items(self) -> "list[tuple[Hashable, CacheValueT]]":
        """Snapshot of the published entries."""
        with self._lock:
            return list(self._entries.items())

    def pop_all(self) -> "list[tuple[Hashable, CacheValueT]]":
        """Remove and return every published entry."""
        with self._lock:
            entries = list(self._entries.items())
            self._entries.clear()
            return entries

    def get_stats(self) -> CacheStats:
        return self._stats

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)


class CachedStatement(NamedTuple):
    """A prepared statement together with what it was compiled from."""

    cluster_name: str
    statement_name: str
    template: str
    compiled: CompiledStatement
    handle: DriverStatement

    @property
    def params_mask(self) -> str:
        return self.compiled.params_mask


@mypyc_attr(allow_interpreted_subclasses=False)
class StatementCache:
    """Prepared statements keyed by ``(cluster_name, statement_name)``.

    Statements are compiled from the query catalog and prepared on the
    cluster's connection the first time they are requested.
    """

    __slots__ = ("_cache", "_catalog", "_marker", "_registry")

    def __init__(
        self, registry: "ConnectionRegistry", catalog: "QueryCatalog", marker: str = DEFAULT_MARKER
    ) -> None:
        self._registry = registry
        self._catalog = catalog
        self._marker = marker
        self._cache: KeyedCache[CachedStatement] = KeyedCache()

    def get_statement(self, cluster_name: str, statement_name: str) -> CachedStatement:
        """Return the prepared statement, preparing it on first use.

        Args:
            cluster_name: Cluster to prepare the statement on.
            statement_name: Name of the template in the query catalog.

        Raises:
            PreparingStatementError: The server refused the statement.

        Returns:
            The cached statement.
        """
        key = CacheKey((cluster_name, statement_name))
        return self._cache.get_or_create(key, lambda: self._prepare(cluster_name, statement_name))

    def _prepare(self, cluster_name: str, statement_name: str) -> CachedStatement:
        template = self._catalog.get_sql(statement_name)
        compiled = compile_statement(template, self._marker)
        connection = self._registry.get_connection(cluster_name)
        with connection.lock:
            try:
                handle = connection.driver_connection.prepare(compiled.sql)
            except DriverError as exc:
                error = PreparingStatementError(statement_name, str(exc), compiled.sql)
                logger.warning("%s", error.detail)
                raise error from exc
        log_with_context(
            logger,
            logging.DEBUG,
            "Prepared statement",
            cluster=cluster_name,
            statement=statement_name,
            params_mask=compiled.params_mask,
        )
        return CachedStatement(cluster_name, statement_name, template, compiled, handle)

    def get_stats(self) -> CacheStats:
        return self._cache.get_stats()

    def __contains__(self, key: object) -> bool:
        return CacheKey(key) in self._cache if isinstance(key, tuple) else False

    def __len__(self) -> int:
        return len(self._cache)

    def close(self) -> None:
        """Deallocate every cached statement on its server."""
        for _, statement in self._cache.pop_all():
            connection = self._registry.get_cached_connection(statement.cluster_name)
            if connection is None:
                continue
            with connection.lock:
                try:
                    statement.handle.close()
                except DriverError:
                    logger.warning(
                        "Failed to deallocate statement %s on cluster %s",
                        statement.statement_name,
                        statement.cluster_name,
                        exc_info=True,
                    )
