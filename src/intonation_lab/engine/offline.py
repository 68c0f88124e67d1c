"""Feed a recorded signal through an engine as if it were arriving live."""

import logging
from typing import Optional

import numpy as np

from .analysis_engine import AnalysisEngine

logger = logging.getLogger(__name__)


def stream_signal(engine: AnalysisEngine, signal: np.ndarray, sample_rate: int,
                  target_fps: float = 60.0, start_time: float = 0.0,
                  capture: bool = True) -> int:
    """Run analysis cycles over ``signal`` on a virtual clock.

    Cycle ``k`` sees the ``fft_size`` samples ending at ``k * sample_rate /
    target_fps``; before that many samples exist the frame is left-padded
    with zeros, like an analyser node that has not filled yet. Complete
    ``capture_chunk_size`` blocks are handed to ``capture_chunk`` as they
    become available.

    Args:
        engine: A started AnalysisEngine
        signal: Mono samples
        sample_rate: Sample rate of ``signal``
        target_fps: Simulated display refresh rate
        start_time: Timestamp (ms) of the first sample
        capture: Whether to feed the capture buffer

    Returns:
        Number of cycles run
    """
    if target_fps <= 0:
        raise ValueError(f"target_fps must be positive, got {target_fps}")

    cfg = engine.config
    audio = np.asarray(signal, dtype=np.float32).reshape(-1)
    padded = np.concatenate([np.zeros(cfg.fft_size, dtype=np.float32), audio])
    hop = sample_rate / float(target_fps)
    chunk_size = cfg.capture_chunk_size

    def to_ms(position: int) -> float:
        return start_time + position * 1000.0 / sample_rate

    cycles = 0
    next_chunk_end = chunk_size
    k = 1
    while True:
        position = int(round(k * hop))
        if position > audio.size:
            break

        while capture and next_chunk_end <= position:
            engine.capture_chunk(audio[next_chunk_end - chunk_size:next_chunk_end],
                                 now=to_ms(next_chunk_end), sample_rate=sample_rate)
            next_chunk_end += chunk_size

        # padded[position:position + fft_size] == audio[position - fft_size:position]
        engine.run_cycle(padded[position:position + cfg.fft_size], None, sample_rate,
                         now=to_ms(position))
        cycles += 1
        k += 1

    # Whole blocks that completed after the last cycle
    while capture and next_chunk_end <= audio.size:
        engine.capture_chunk(audio[next_chunk_end - chunk_size:next_chunk_end],
                             now=to_ms(next_chunk_end), sample_rate=sample_rate)
        next_chunk_end += chunk_size

    logger.debug(f"Streamed {audio.size} samples in {cycles} cycles")
    return cycles


def analyze_signal(signal: np.ndarray, sample_rate: int,
                   engine: Optional[AnalysisEngine] = None,
                   target_fps: float = 60.0) -> AnalysisEngine:
    """Start ``engine`` (or a default one), stream ``signal`` through it and return it.

    The engine is left running so its buffers can be inspected; trailing
    silence is not appended, so a note still sounding at the end stays open.
    """
    if engine is None:
        engine = AnalysisEngine()
    if engine.config.sample_rate != sample_rate:
        engine.reconfigure(sample_rate=int(sample_rate))
    if not engine.is_running:
        engine.start()
    stream_signal(engine, signal, sample_rate, target_fps=target_fps)
    return engine
