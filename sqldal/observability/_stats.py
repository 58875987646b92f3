"""Per-query execution statistics."""

import threading
from dataclasses import dataclass
from typing import Any

__all__ = ("StatsEntry", "StatsRecorder")


@dataclass(slots=True)
class StatsEntry:
    """Invocation count and cumulative wall time for one query or statement."""

    counter: int = 0
    total_time: float = 0.0

    @property
    def average_time(self) -> float:
        return self.total_time / self.counter if self.counter else 0.0

    def as_dict(self) -> "dict[str, Any]":
        """Return the entry as a dictionary."""

        return {"counter": self.counter, "total_time": self.total_time}


class StatsRecorder:
    """Thread-safe accumulator keyed by query or statement name.

    Entries are never evicted; the map grows with the number of distinct
    names executed during the recorder's lifetime.
    """

    __slots__ = ("_entries", "_lock")

    def __init__(self) -> None:
        self._entries: dict[str, StatsEntry] = {}
        self._lock = threading.Lock()

    def record(self, name: str, elapsed: float) -> None:
        """Count one execution of ``name`` that took ``elapsed`` seconds."""

        with self._lock:
            entry = self._entries.get(name)
            if entry is None:
                self._entries[name] = StatsEntry(counter=1, total_time=elapsed)
                return
            entry.counter += 1
            entry.total_time += elapsed

    def get_stats(self) -> "dict[str, StatsEntry]":
        """Return a snapshot; later executions do not mutate it."""

        with self._lock:
            return {name: StatsEntry(entry.counter, entry.total_time) for name, entry in self._entries.items()}

    def reset(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries
