"""Note segmentation: turns per-cycle classifications into discrete note events.

The segmenter is a small state machine:

    SILENT       no stable classification is being tracked
    STABILIZING  consecutive matching, confident frames are being counted
    SUSTAINED    a note candidate is open and will be closed on the next change

A candidate opens once ``required_frames`` consecutive frames have matched
the previous frame's note and octave with confidence above
``confidence_threshold``. It closes as soon as the classification changes,
confidence drops, or a cycle carries no valid pitch; closing appends an
immutable ``NoteEvent`` to the note-event log.
"""

import itertools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from ..buffers.rolling import NoteEventLog
from .note_classifier import NoteClassification, interval_direction, interval_name

logger = logging.getLogger(__name__)

DEFAULT_STABILITY_FRAMES = 8
DEFAULT_STABILITY_CONFIDENCE = 0.7


class SegmentationState(Enum):
    SILENT = 'silent'
    STABILIZING = 'stabilizing'
    SUSTAINED = 'sustained'


@dataclass(frozen=True)
class NoteEvent:
    """A played note, created when its candidate closes."""
    id: int
    start_time: float
    end_time: float
    duration_ms: float
    note_name: str
    octave: int
    frequency_hz: float
    cents: int
    midi_number: int
    interval_semitones: Optional[int] = None
    direction: Optional[str] = None

    @property
    def label(self) -> str:
        return f"{self.note_name}{self.octave}"

    @property
    def interval_name(self) -> Optional[str]:
        if self.interval_semitones is None:
            return None
        return interval_name(self.interval_semitones)


@dataclass(frozen=True)
class _Candidate:
    start_time: float
    classification: NoteClassification
    frequency_hz: float


class NoteSegmenter:
    """Note segmentation state machine.

    Args:
        event_log: Log that closed events are appended to
        required_frames: Consecutive stable frames needed to open a note
        confidence_threshold: Minimum (exclusive) confidence of a stable frame
    """

    def __init__(self, event_log: NoteEventLog,
                 required_frames: int = DEFAULT_STABILITY_FRAMES,
                 confidence_threshold: float = DEFAULT_STABILITY_CONFIDENCE):
        self.event_log = event_log
        self.required_frames = required_frames
        self.confidence_threshold = confidence_threshold
        self._ids = itertools.count(1)
        self.reset()

    def reset(self) -> None:
        """Return to the initial state, dropping any open candidate."""
        self._stability_count = 0
        self._last_key: Optional[Tuple[str, int]] = None
        self._candidate: Optional[_Candidate] = None

    @property
    def state(self) -> SegmentationState:
        if self._candidate is not None:
            return SegmentationState.SUSTAINED
        if self._last_key is not None:
            return SegmentationState.STABILIZING
        return SegmentationState.SILENT

    @property
    def stability_count(self) -> int:
        return self._stability_count

    @property
    def has_open_note(self) -> bool:
        return self._candidate is not None

    def update(self, classification: Optional[NoteClassification],
               frequency_hz: float, confidence: float, now: float) -> Optional[NoteEvent]:
        """Feed one cycle's classification.

        Args:
            classification: Current note, or None when the cycle has no valid pitch
            frequency_hz: Detected frequency for the cycle
            confidence: Estimator confidence for the cycle
            now: Cycle timestamp in milliseconds

        Returns:
            The NoteEvent closed by this cycle, if any
        """
        if classification is None:
            closed = self._close(now)
            self._stability_count = 0
            self._last_key = None
            return closed

        key = (classification.note_name, classification.octave)
        closed = None

        if key == self._last_key and confidence > self.confidence_threshold:
            self._stability_count += 1
            if self._stability_count >= self.required_frames and self._candidate is None:
                self._candidate = _Candidate(start_time=now,
                                             classification=classification,
                                             frequency_hz=frequency_hz)
                logger.debug(f"Note candidate opened: {classification.label}")
        else:
            closed = self._close(now)
            self._stability_count = 0

        self._last_key = key
        return closed

    def release(self) -> None:
        """Discard the open candidate without emitting an event."""
        if self._candidate is not None:
            logger.debug(f"Released open note candidate {self._candidate.classification.label}")
        self.reset()

    def _close(self, now: float) -> Optional[NoteEvent]:
        candidate = self._candidate
        if candidate is None:
            return None
        self._candidate = None

        note = candidate.classification
        interval = None
        direction = None
        previous = self.event_log.last()
        if previous is not None:
            interval = note.midi_number - previous.midi_number
            direction = interval_direction(interval)

        event = NoteEvent(
            id=next(self._ids),
            start_time=candidate.start_time,
            end_time=now,
            duration_ms=now - candidate.start_time,
            note_name=note.note_name,
            octave=note.octave,
            frequency_hz=candidate.frequency_hz,
            cents=note.cents,
            midi_number=note.midi_number,
            interval_semitones=interval,
            direction=direction
        )
        self.event_log.append(event)
        logger.debug(f"Note closed: {event.label} ({event.duration_ms:.0f} ms)")
        return event
