"""Bounded rolling stores for pitch history and note events.

Both stores are backed by ``collections.deque`` so inserts and evictions at
the two ends are O(1); a time-windowed insert only ever touches the prefix
it evicts.
"""

from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Generic, Iterator, Optional, Tuple, TypeVar

T = TypeVar('T')

DEFAULT_HISTORY_RETENTION_MS = 60000.0
DEFAULT_MAX_NOTE_EVENTS = 100


@dataclass(frozen=True)
class HistorySample:
    """Pitch and loudness for a single processing cycle."""
    time: float
    frequency_hz: float
    note_name: str
    octave: int
    cents: int
    confidence: float
    rms: float
    is_silent: bool


class TimeWindowedBuffer(Generic[T]):
    """Append-only buffer that drops entries older than a retention window.

    Args:
        retention_ms: Width of the window in milliseconds
        timestamp: Function returning an entry's timestamp in milliseconds;
            defaults to the entry's ``time`` attribute
    """

    def __init__(self, retention_ms: float,
                 timestamp: Optional[Callable[[T], float]] = None):
        if retention_ms <= 0:
            raise ValueError(f"retention_ms must be positive, got {retention_ms}")
        self.retention_ms = float(retention_ms)
        self._timestamp = timestamp or (lambda entry: entry.time)
        self._entries: Deque[T] = deque()

    def append(self, entry: T, now: Optional[float] = None) -> int:
        """Append ``entry`` and evict everything older than ``now - retention_ms``.

        Args:
            entry: Entry to append
            now: Reference time; defaults to the entry's own timestamp

        Returns:
            Number of evicted entries
        """
        self._entries.append(entry)
        reference = self._timestamp(entry) if now is None else now
        return self.evict(reference)

    def evict(self, now: float) -> int:
        cutoff = now - self.retention_ms
        evicted = 0
        while self._entries and self._timestamp(self._entries[0]) < cutoff:
            self._entries.popleft()
            evicted += 1
        return evicted

    def snapshot(self) -> Tuple[T, ...]:
        return tuple(self._entries)

    def since(self, start_time: float) -> Tuple[T, ...]:
        """Entries with a timestamp at or after ``start_time``."""
        return tuple(e for e in self._entries if self._timestamp(e) >= start_time)

    @property
    def oldest(self) -> Optional[T]:
        return self._entries[0] if self._entries else None

    @property
    def newest(self) -> Optional[T]:
        return self._entries[-1] if self._entries else None

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[T]:
        return iter(self._entries)


class PitchHistoryBuffer(TimeWindowedBuffer[HistorySample]):
    """Rolling pitch/loudness history, 60 seconds by default."""

    def __init__(self, retention_ms: float = DEFAULT_HISTORY_RETENTION_MS):
        super().__init__(retention_ms)


class NoteEventLog:
    """Count-capped log of closed note events; the oldest entry drops on overflow."""

    def __init__(self, max_events: int = DEFAULT_MAX_NOTE_EVENTS):
        if max_events <= 0:
            raise ValueError(f"max_events must be positive, got {max_events}")
        self.max_events = max_events
        self._events: Deque[Any] = deque(maxlen=max_events)

    def append(self, event: Any) -> None:
        self._events.append(event)

    def last(self) -> Optional[Any]:
        return self._events[-1] if self._events else None

    def snapshot(self) -> Tuple[Any, ...]:
        return tuple(self._events)

    def clear(self) -> None:
        self._events.clear()

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._events)
