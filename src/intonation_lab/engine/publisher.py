"""Message types and observer registry for analysis output.

Observers are plain callables invoked synchronously from the processing
cycle. They must return quickly: a slow observer delays every subsequent
cycle. Anything blocking (disk, network, UI marshalling across threads)
belongs on the observer's own queue or thread.
"""

import itertools
import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Tuple, Union

import numpy as np

from ..analysis.harmonics import HarmonicPartial
from ..analysis.note_classifier import NO_NOTE_NAME
from ..analysis.segmentation import NoteEvent
from ..buffers.rolling import HistorySample

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PitchReading:
    """Pitch shown to consumers; frequency 0 and note '--' mean no pitch."""
    frequency_hz: float = 0.0
    note_name: str = NO_NOTE_NAME
    octave: int = 0
    cents: int = 0
    confidence: float = 0.0
    midi_number: int = 0

    @property
    def has_pitch(self) -> bool:
        return self.frequency_hz > 0


NO_PITCH = PitchReading()


@dataclass(frozen=True, eq=False)
class AnalysisFrame:
    """Everything computed by one processing cycle."""
    timestamp: float
    pitch: PitchReading
    smoothed_pitch: PitchReading
    rms: float
    is_silent: bool
    waveform: np.ndarray
    spectrum: np.ndarray
    harmonics: Tuple[HarmonicPartial, ...]
    history: Tuple[HistorySample, ...]
    note_events: Tuple[NoteEvent, ...]
    sample_rate: int
    fft_size: int
    fps: int
    type: str = field(default='frame', init=False)


@dataclass(frozen=True)
class NoteEventMessage:
    """Published when a note closes."""
    event: NoteEvent
    type: str = field(default='noteEvent', init=False)


@dataclass(frozen=True)
class NoteEventsCleared:
    """Published when the note-event log is cleared."""
    timestamp: float
    type: str = field(default='noteEventsCleared', init=False)


Message = Union[AnalysisFrame, NoteEventMessage, NoteEventsCleared]
Observer = Callable[[Message], None]


class Subscription:
    """Handle returned by ``Publisher.subscribe``; consumed by ``unsubscribe``."""

    def __init__(self, publisher: 'Publisher', token: int):
        self._publisher = publisher
        self.token = token
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> bool:
        """Remove the observer. Returns False if it was already removed."""
        if not self._active:
            return False
        self._active = False
        return self._publisher._remove(self.token)

    def __enter__(self) -> 'Subscription':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.unsubscribe()

    def __repr__(self) -> str:
        return f"Subscription(token={self.token}, active={self._active})"


class Publisher:
    """Fan-out of messages to registered observers.

    An observer that raises is logged and skipped; the remaining observers
    still receive the message.
    """

    def __init__(self):
        self._observers: Dict[int, Observer] = {}
        self._tokens = itertools.count(1)
        self._lock = threading.Lock()

    def subscribe(self, observer: Observer) -> Subscription:
        if not callable(observer):
            raise TypeError(f"Observer must be callable, got {type(observer).__name__}")
        with self._lock:
            token = next(self._tokens)
            self._observers[token] = observer
        return Subscription(self, token)

    def unsubscribe(self, subscription: Subscription) -> bool:
        return subscription.unsubscribe()

    def _remove(self, token: int) -> bool:
        with self._lock:
            return self._observers.pop(token, None) is not None

    def publish(self, message: Message) -> int:
        """Deliver ``message`` to every observer.

        Returns:
            Number of observers that handled the message without raising
        """
        with self._lock:
            observers = list(self._observers.items())

        delivered = 0
        for token, observer in observers:
            try:
                observer(message)
                delivered += 1
            except Exception as e:
                logger.error(
                    f"Observer {token} failed on {message.type} message: {e}",
                    exc_info=True
                )
        return delivered

    def clear(self) -> None:
        with self._lock:
            self._observers.clear()

    @property
    def observer_count(self) -> int:
        with self._lock:
            return len(self._observers)


def readonly_copy(values: Optional[np.ndarray], dtype=None) -> np.ndarray:
    """Copy an array and mark the copy read-only for inclusion in a frame."""
    if values is None:
        copy = np.zeros(0, dtype=dtype or np.float32)
    else:
        copy = np.array(values, dtype=dtype, copy=True)
    copy.setflags(write=False)
    return copy
