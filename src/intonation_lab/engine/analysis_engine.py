"""Real-time pitch and harmonic analysis engine.

The engine is an explicitly constructed object; hosts own its lifecycle:

    >>> engine = AnalysisEngine(EngineConfiguration(fft_size=4096))
    >>> subscription = engine.subscribe(on_message)
    >>> engine.start()
    >>> frame = engine.run_cycle(samples, spectrum, 48000)   # once per display refresh
    >>> engine.capture_chunk(block)                         # from the audio callback
    >>> wav_bytes = engine.export_loop(start_ms, end_ms)
    >>> engine.stop()

Each ``run_cycle`` call windows the frame, estimates pitch, classifies it,
measures harmonics, advances note segmentation, updates the rolling
buffers and publishes an ``AnalysisFrame``. Cycles run to completion one
at a time; observers are called synchronously at the end of the cycle.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import numpy as np

from ..analysis.harmonics import calculate_harmonics
from ..analysis.note_classifier import NoteClassification, frequency_to_note, intonation_color
from ..analysis.pitch_estimator import PitchEstimator
from ..analysis.segmentation import NoteEvent, NoteSegmenter, SegmentationState
from ..analysis.spectrum import SpectrumAnalyzer
from ..analysis.windowing import apply_hann_window, calculate_rms
from ..buffers.capture import AudioCaptureBuffer, LoopAudio
from ..buffers.rolling import HistorySample, NoteEventLog, PitchHistoryBuffer
from ..buffers.wav_export import encode_wav
from .config import EngineConfiguration
from .driver import CycleDriver
from .publisher import (
    NO_PITCH,
    AnalysisFrame,
    NoteEventMessage,
    NoteEventsCleared,
    Observer,
    PitchReading,
    Publisher,
    Subscription,
    readonly_copy,
)

logger = logging.getLogger(__name__)

# (samples, spectrum or None, sample_rate) or None when no frame is ready
FrameSource = Callable[[], Optional[Tuple[np.ndarray, Optional[np.ndarray], int]]]


def wall_clock_ms() -> float:
    return time.time() * 1000.0


@dataclass
class EngineState:
    """Mutable per-run analysis state, owned by the engine."""
    current_pitch: PitchReading = NO_PITCH
    smoothed_pitch: PitchReading = NO_PITCH
    rms: float = 0.0
    is_silent: bool = True
    gate_threshold: float = 0.015
    frame_count: int = 0
    fps: int = 0
    last_fps_time: Optional[float] = None


class AnalysisEngine:
    """Pitch, harmonic and note-segmentation engine for a live mono stream.

    Args:
        config: Engine configuration (defaults to EngineConfiguration())
        clock: Callable returning the current time in milliseconds
        publisher: Observer registry to publish through
    """

    def __init__(self, config: Optional[EngineConfiguration] = None,
                 clock: Optional[Callable[[], float]] = None,
                 publisher: Optional[Publisher] = None):
        self.config = (config or EngineConfiguration()).validate()
        self.publisher = publisher if publisher is not None else Publisher()
        self._clock = clock or wall_clock_ms
        self._lock = threading.RLock()
        self._running = False
        self._driver: Optional[CycleDriver] = None

        cfg = self.config
        self.history = PitchHistoryBuffer(cfg.history_retention_ms)
        self.note_log = NoteEventLog(cfg.max_note_events)
        self.capture = AudioCaptureBuffer(cfg.capture_retention_ms, cfg.sample_rate)
        self._segmenter = NoteSegmenter(self.note_log,
                                        required_frames=cfg.stability_frames,
                                        confidence_threshold=cfg.stability_confidence)
        self._build_pipeline(cfg)
        self.state = EngineState(gate_threshold=cfg.auto_gate_initial)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def driver(self) -> Optional[CycleDriver]:
        return self._driver

    def start(self, frame_source: Optional[FrameSource] = None,
              target_fps: float = 60.0) -> None:
        """Reset analysis state and start accepting cycles.

        Args:
            frame_source: Optional callable polled once per tick by a
                CycleDriver; without it the host calls run_cycle itself
            target_fps: Tick rate for the driver
        """
        with self._lock:
            if self._running:
                logger.warning("AnalysisEngine.start() called while already running")
                return

            self.state = EngineState(gate_threshold=self.config.auto_gate_initial,
                                     last_fps_time=self._clock())
            self._segmenter.reset()
            self._spectrum_analyzer.reset()
            self._running = True

        if frame_source is not None:
            self._driver = CycleDriver(lambda: self._pump(frame_source), target_fps=target_fps)
            self._driver.start()

        logger.info(
            "Analysis engine started",
            extra={"fft_size": self.config.fft_size, "sample_rate": self.config.sample_rate,
                   "driven": frame_source is not None}
        )

    def stop(self) -> None:
        """Halt the trigger, drop any open note without closing it, and clear all buffers."""
        driver = self._driver
        self._driver = None
        if driver is not None:
            driver.stop()

        with self._lock:
            was_running = self._running
            self._running = False
            self._segmenter.release()
            self._spectrum_analyzer.reset()
            self.history.clear()
            self.note_log.clear()
            self.capture.clear()

        if was_running:
            logger.info("Analysis engine stopped")

    def reconfigure(self, **changes) -> EngineConfiguration:
        """Apply configuration changes, reallocating size-dependent buffers.

        Takes effect from the next cycle. Raises ConfigurationError for
        invalid values, leaving the current configuration untouched.
        """
        new_config = self.config.replace(**changes)

        with self._lock:
            old = self.config
            self.config = new_config

            if (new_config.fft_size != old.fft_size
                    or new_config.smoothing_time_constant != old.smoothing_time_constant
                    or new_config.waveform_size != old.waveform_size
                    or new_config.yin_threshold != old.yin_threshold
                    or new_config.yin_confidence_threshold != old.yin_confidence_threshold
                    or new_config.autocorrelation_silence_rms != old.autocorrelation_silence_rms
                    or new_config.autocorrelation_edge_threshold != old.autocorrelation_edge_threshold):
                self._build_pipeline(new_config)

            self._segmenter.required_frames = new_config.stability_frames
            self._segmenter.confidence_threshold = new_config.stability_confidence

            if new_config.max_note_events != old.max_note_events:
                resized = NoteEventLog(new_config.max_note_events)
                for event in self.note_log:
                    resized.append(event)
                self.note_log = resized
                self._segmenter.event_log = resized

            self.history.retention_ms = float(new_config.history_retention_ms)
            self.capture.retention_ms = float(new_config.capture_retention_ms)
            self.capture.set_sample_rate(new_config.sample_rate)

            if new_config.noise_gate != old.noise_gate:
                self.state.gate_threshold = new_config.auto_gate_initial

        logger.info(f"Engine reconfigured: {sorted(changes)}")
        return new_config

    def _build_pipeline(self, cfg: EngineConfiguration) -> None:
        self._estimator = PitchEstimator(
            yin_threshold=cfg.yin_threshold,
            yin_confidence_threshold=cfg.yin_confidence_threshold,
            silence_rms=cfg.autocorrelation_silence_rms,
            edge_threshold=cfg.autocorrelation_edge_threshold
        )
        self._spectrum_analyzer = SpectrumAnalyzer(cfg.fft_size, cfg.smoothing_time_constant)
        self._spectrum = np.zeros(cfg.frequency_bin_count, dtype=np.uint8)
        self._waveform = np.zeros(cfg.waveform_size, dtype=np.float32)

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, observer: Observer) -> Subscription:
        """Register an observer for frames, note events and clear notifications.

        Observers run synchronously inside the cycle and must not block.
        """
        return self.publisher.subscribe(observer)

    def unsubscribe(self, subscription: Subscription) -> bool:
        return self.publisher.unsubscribe(subscription)

    # ------------------------------------------------------------------
    # Processing cycle
    # ------------------------------------------------------------------

    def _pump(self, frame_source: FrameSource) -> None:
        item = frame_source()
        if item is None:
            return
        samples, spectrum, sample_rate = item
        self.run_cycle(samples, spectrum, sample_rate)

    def run_cycle(self, samples: np.ndarray, spectrum: Optional[np.ndarray] = None,
                  sample_rate: Optional[int] = None,
                  now: Optional[float] = None) -> Optional[AnalysisFrame]:
        """Process one time-domain frame and publish the result.

        Args:
            samples: ``fft_size`` time-domain samples
            spectrum: ``fft_size / 2`` magnitude bins (0-255); computed
                internally when omitted
            sample_rate: Sample rate of ``samples`` (defaults to the configured rate)
            now: Cycle timestamp in milliseconds (defaults to the engine clock)

        Returns:
            The published AnalysisFrame, or None when the input did not match
            the configured sizes or an observer stopped the engine mid-cycle

        Raises:
            RuntimeError: If the engine is not running
        """
        with self._lock:
            if not self._running:
                raise RuntimeError("AnalysisEngine is not running; call start() first")

            cfg = self.config
            now = self._clock() if now is None else float(now)
            sample_rate = int(sample_rate or cfg.sample_rate)

            frame = np.asarray(samples, dtype=np.float64).reshape(-1)
            if frame.size != cfg.fft_size:
                logger.debug(f"Skipping cycle: frame has {frame.size} samples, expected {cfg.fft_size}")
                return None

            if spectrum is None:
                spectrum_data = self._spectrum_analyzer.byte_frequency_data(frame)
            else:
                spectrum_data = np.asarray(spectrum).reshape(-1)
                if spectrum_data.size != cfg.frequency_bin_count:
                    logger.debug(
                        f"Skipping cycle: spectrum has {spectrum_data.size} bins, "
                        f"expected {cfg.frequency_bin_count}"
                    )
                    return None
            self._spectrum = spectrum_data

            state = self.state
            rms = calculate_rms(frame)
            is_silent = rms < self._silence_threshold(rms)

            estimate = self._estimator.estimate(frame, sample_rate, windowed=apply_hann_window(frame))

            classification: Optional[NoteClassification] = None
            if (estimate is not None and not is_silent
                    and cfg.min_frequency < estimate.frequency_hz < cfg.max_frequency):
                classification = frequency_to_note(estimate.frequency_hz, cfg.reference_pitch)

            if classification is not None:
                current = PitchReading(
                    frequency_hz=estimate.frequency_hz,
                    note_name=classification.note_name,
                    octave=classification.octave,
                    cents=classification.cents,
                    confidence=estimate.confidence,
                    midi_number=classification.midi_number
                )
                state.smoothed_pitch = self._smooth(state.smoothed_pitch, current)
                closed = self._segmenter.update(classification, estimate.frequency_hz,
                                                estimate.confidence, now)
            else:
                current = NO_PITCH
                closed = self._segmenter.update(None, 0.0, 0.0, now)

            state.current_pitch = current
            state.rms = rms
            state.is_silent = is_silent

            if closed is not None:
                self.publisher.publish(NoteEventMessage(closed))
                if not self._running:
                    # An observer stopped the engine; the buffers are already cleared
                    return None

            harmonics = ()
            if current.has_pitch:
                harmonics = tuple(calculate_harmonics(spectrum_data, sample_rate, cfg.fft_size,
                                                      current.frequency_hz, cfg.num_partials))

            self.history.append(HistorySample(
                time=now,
                frequency_hz=current.frequency_hz,
                note_name=current.note_name,
                octave=current.octave,
                cents=current.cents,
                confidence=current.confidence,
                rms=rms,
                is_silent=is_silent
            ), now)

            self._update_fps(now)
            self._waveform = frame[-cfg.waveform_size:].astype(np.float32)

            analysis_frame = AnalysisFrame(
                timestamp=now,
                pitch=current,
                smoothed_pitch=state.smoothed_pitch,
                rms=rms,
                is_silent=is_silent,
                waveform=readonly_copy(self._waveform),
                spectrum=readonly_copy(spectrum_data),
                harmonics=harmonics,
                history=self.history.snapshot(),
                note_events=self.note_log.snapshot(),
                sample_rate=sample_rate,
                fft_size=cfg.fft_size,
                fps=state.fps
            )
            self.publisher.publish(analysis_frame)
            return analysis_frame

    def _silence_threshold(self, rms: float) -> float:
        cfg = self.config
        if not cfg.is_auto_gate:
            return float(cfg.noise_gate)

        threshold = max(
            cfg.auto_gate_floor,
            self.state.gate_threshold * cfg.auto_gate_decay
            + rms * cfg.auto_gate_rms_weight * cfg.auto_gate_rms_scale
        )
        self.state.gate_threshold = threshold
        return threshold

    def _smooth(self, previous: PitchReading, current: PitchReading) -> PitchReading:
        s = self.config.pitch_smoothing
        return PitchReading(
            frequency_hz=previous.frequency_hz * s + current.frequency_hz * (1.0 - s),
            note_name=current.note_name,
            octave=current.octave,
            cents=int(np.floor(previous.cents * s + current.cents * (1.0 - s) + 0.5)),
            confidence=current.confidence,
            midi_number=current.midi_number
        )

    def _update_fps(self, now: float) -> None:
        state = self.state
        state.frame_count += 1
        if state.last_fps_time is None:
            state.last_fps_time = now
        elif now - state.last_fps_time >= 1000.0:
            state.fps = state.frame_count
            state.frame_count = 0
            state.last_fps_time = now

    # ------------------------------------------------------------------
    # Raw-audio capture and loops
    # ------------------------------------------------------------------

    def capture_chunk(self, samples: np.ndarray, now: Optional[float] = None,
                      sample_rate: Optional[int] = None) -> bool:
        """Append an audio block to the capture buffer.

        Safe to call from the audio thread; only the capture buffer is touched.

        Returns:
            False when the engine is stopped and the block was ignored
        """
        if not self._running:
            return False
        if sample_rate is not None:
            self.capture.set_sample_rate(sample_rate)
        self.capture.append(samples, self._clock() if now is None else float(now))
        return True

    def extract_range(self, start_time: float, end_time: float) -> Optional[LoopAudio]:
        """Captured audio between two timestamps (ms), or None if nothing was captured."""
        return self.capture.extract_range(start_time, end_time)

    def export_loop(self, start_time: float, end_time: float) -> Optional[bytes]:
        """WAV bytes for a captured range, or None if nothing was captured."""
        loop = self.extract_range(start_time, end_time)
        if loop is None:
            return None
        return encode_wav(loop.samples, loop.sample_rate)

    # ------------------------------------------------------------------
    # Note events and display helpers
    # ------------------------------------------------------------------

    @property
    def note_events(self) -> Tuple[NoteEvent, ...]:
        return self.note_log.snapshot()

    @property
    def segmentation_state(self) -> SegmentationState:
        return self._segmenter.state

    def clear_note_events(self) -> None:
        with self._lock:
            self.note_log.clear()
        self.publisher.publish(NoteEventsCleared(timestamp=self._clock()))

    def intonation_color(self, cents: float) -> str:
        return intonation_color(cents, self.config.sensitivity_range)
