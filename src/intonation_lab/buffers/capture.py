"""Raw-audio capture ring buffer used for loop extraction.

The capture path is fed by the audio callback, which may run on a different
thread from the analysis cycle, so every access goes through a lock. Only
this buffer is shared; analysis state stays owned by the engine.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_CAPTURE_RETENTION_MS = 60000.0
DEFAULT_CHUNK_SIZE = 4096


@dataclass(frozen=True)
class AudioChunk:
    """A timestamped block of mono samples."""
    time: float
    samples: np.ndarray


@dataclass(frozen=True)
class LoopAudio:
    """Contiguous audio extracted from the capture buffer."""
    samples: np.ndarray
    sample_rate: int
    duration_s: float

    @property
    def num_samples(self) -> int:
        return int(self.samples.size)


class AudioCaptureBuffer:
    """Time-windowed store of incoming audio chunks.

    Args:
        retention_ms: How much audio to keep, by chunk timestamp
        sample_rate: Sample rate of the captured audio
    """

    def __init__(self, retention_ms: float = DEFAULT_CAPTURE_RETENTION_MS,
                 sample_rate: int = 48000):
        self.retention_ms = float(retention_ms)
        self.sample_rate = int(sample_rate)
        self._chunks: Deque[AudioChunk] = deque()
        self._lock = threading.Lock()

    def append(self, samples: np.ndarray, now: float) -> None:
        """Store a copy of ``samples`` stamped with ``now`` (ms) and evict stale chunks."""
        data = np.array(samples, dtype=np.float32, copy=True).reshape(-1)
        data.setflags(write=False)
        chunk = AudioChunk(time=now, samples=data)
        cutoff = now - self.retention_ms

        with self._lock:
            self._chunks.append(chunk)
            while self._chunks and self._chunks[0].time < cutoff:
                self._chunks.popleft()

    def extract_range(self, start_time: float, end_time: float) -> Optional[LoopAudio]:
        """Concatenate all chunks stamped within ``[start_time, end_time]``.

        Returns:
            LoopAudio, or None when no chunk falls in the range
        """
        with self._lock:
            selected = [c.samples for c in self._chunks if start_time <= c.time <= end_time]
            sample_rate = self.sample_rate

        if not selected:
            logger.debug(f"No captured audio between {start_time} and {end_time}")
            return None

        return LoopAudio(
            samples=np.concatenate(selected),
            sample_rate=sample_rate,
            duration_s=(end_time - start_time) / 1000.0
        )

    def time_span(self) -> Optional[Tuple[float, float]]:
        """Timestamps of the oldest and newest chunk, if any."""
        with self._lock:
            if not self._chunks:
                return None
            return self._chunks[0].time, self._chunks[-1].time

    def set_sample_rate(self, sample_rate: int) -> None:
        """Change the sample rate; chunks recorded at the old rate are dropped."""
        with self._lock:
            if int(sample_rate) != self.sample_rate:
                self._chunks.clear()
                self.sample_rate = int(sample_rate)

    def clear(self) -> None:
        with self._lock:
            self._chunks.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._chunks)
