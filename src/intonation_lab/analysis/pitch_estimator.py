"""Monophonic pitch estimation: YIN with an autocorrelation fallback.

Both estimators work on a single time-domain frame and return either a
``PitchEstimate`` or ``None`` when no pitch could be found. ``None`` is the
only "no pitch" value; a ``PitchEstimate`` always carries a positive,
finite frequency.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

import numpy as np
from scipy import signal

logger = logging.getLogger(__name__)

# YIN cumulative-mean-normalized-difference cutoff
DEFAULT_YIN_THRESHOLD = 0.15
# YIN results at or below this confidence trigger the autocorrelation fallback
DEFAULT_YIN_CONFIDENCE_THRESHOLD = 0.7
# Autocorrelation silence floor (RMS of the unwindowed frame)
DEFAULT_SILENCE_RMS = 0.008
# Amplitude used to trim near-silent edges before autocorrelation
DEFAULT_EDGE_THRESHOLD = 0.15
MIN_TRIMMED_SAMPLES = 10


@dataclass(frozen=True)
class PitchEstimate:
    """A detected fundamental frequency.

    Attributes:
        frequency_hz: Estimated fundamental (always > 0)
        confidence: Estimator confidence in [0, 1]
        method: Name of the estimator that produced the result
    """
    frequency_hz: float
    confidence: float
    method: str = 'yin'


def _parabolic_offset(s0: float, s1: float, s2: float) -> float:
    """Vertex offset of the parabola through three equally spaced points."""
    denominator = 2.0 * (2.0 * s1 - s2 - s0)
    if denominator == 0.0:
        return 0.0
    return (s2 - s0) / denominator


def difference_function(frame: np.ndarray) -> np.ndarray:
    """YIN difference function ``d(tau)`` for ``tau`` in ``[0, N/2)``.

    Uses the expansion ``d(tau) = e_head + e_tail(tau) - 2 * r(tau)`` so the
    cross term can be computed with a single FFT correlation instead of the
    quadratic double loop.
    """
    x = np.asarray(frame, dtype=np.float64)
    window = x.size // 2
    if window == 0:
        return np.zeros(0)

    head = x[:window]
    taus = np.arange(window)

    squared_cumsum = np.concatenate(([0.0], np.cumsum(x * x)))
    head_energy = squared_cumsum[window]
    tail_energy = squared_cumsum[taus + window] - squared_cumsum[taus]
    cross = signal.correlate(x[:2 * window - 1], head, mode='valid', method='fft')

    diff = head_energy + tail_energy - 2.0 * cross[:window]
    # FFT round-off can push exact zeros slightly negative
    return np.maximum(diff, 0.0)


def cumulative_mean_normalized_difference(diff: np.ndarray) -> np.ndarray:
    """CMND: ``d'(0) = 1`` and ``d'(tau) = d(tau) * tau / sum(d[1..tau])``."""
    cmnd = np.ones_like(diff, dtype=np.float64)
    if diff.size < 2:
        return cmnd

    running_sum = np.cumsum(diff[1:])
    taus = np.arange(1, diff.size)
    with np.errstate(divide='ignore', invalid='ignore'):
        normalized = diff[1:] * taus / running_sum
    # An all-zero prefix (digital silence) has no meaningful normalization
    cmnd[1:] = np.where(running_sum > 0.0, normalized, 1.0)
    return cmnd


def yin_pitch(frame: Union[np.ndarray, list], sample_rate: float,
              threshold: float = DEFAULT_YIN_THRESHOLD) -> Optional[PitchEstimate]:
    """Estimate pitch with the YIN algorithm.

    Args:
        frame: Time-domain samples (typically Hann-windowed)
        sample_rate: Sample rate in Hz
        threshold: Absolute CMND threshold

    Returns:
        PitchEstimate, or None when no lag crosses the threshold
    """
    x = np.asarray(frame, dtype=np.float64)
    cmnd = cumulative_mean_normalized_difference(difference_function(x))
    size = cmnd.size
    if size <= 2:
        return None

    crossings = np.flatnonzero(cmnd[2:] < threshold)
    if crossings.size == 0:
        return None

    # Absolute threshold, then walk down to the bottom of the dip
    tau = int(crossings[0]) + 2
    while tau + 1 < size and cmnd[tau + 1] < cmnd[tau]:
        tau += 1

    x0 = tau - 1 if tau >= 1 else tau
    x2 = tau + 1 if tau + 1 < size else tau
    if x0 == tau:
        better_tau = float(tau if cmnd[tau] <= cmnd[x2] else x2)
    elif x2 == tau:
        better_tau = float(tau if cmnd[tau] <= cmnd[x0] else x0)
    else:
        better_tau = tau + _parabolic_offset(cmnd[x0], cmnd[tau], cmnd[x2])

    if better_tau <= 0.0 or not np.isfinite(better_tau):
        return None

    confidence = float(np.clip(1.0 - cmnd[tau], 0.0, 1.0))
    return PitchEstimate(frequency_hz=float(sample_rate / better_tau),
                         confidence=confidence, method='yin')


def _trim_edges(x: np.ndarray, edge_threshold: float) -> np.ndarray:
    """Drop the leading and trailing regions up to the first quiet sample."""
    size = x.size
    half = size // 2
    quiet = np.abs(x) < edge_threshold

    start = 0
    leading = np.flatnonzero(quiet[:half])
    if leading.size:
        start = int(leading[0])

    end = size - 1
    # Scan x[size - 1], x[size - 2], ... for i in [1, size/2)
    trailing = np.flatnonzero(quiet[size - 1:size - half:-1])
    if trailing.size:
        end = size - 1 - int(trailing[0])

    return x[start:end]


def autocorrelation_pitch(frame: Union[np.ndarray, list], sample_rate: float,
                          silence_rms: float = DEFAULT_SILENCE_RMS,
                          edge_threshold: float = DEFAULT_EDGE_THRESHOLD) -> Optional[PitchEstimate]:
    """Estimate pitch from the peak of the time-domain autocorrelation.

    Args:
        frame: Unwindowed time-domain samples
        sample_rate: Sample rate in Hz
        silence_rms: Frames quieter than this are treated as silence
        edge_threshold: Amplitude used to trim the frame edges

    Returns:
        PitchEstimate, or None for silence or an unusable peak
    """
    x = np.asarray(frame, dtype=np.float64)
    if x.size == 0:
        return None

    rms = float(np.sqrt(np.mean(x * x)))
    if rms < silence_rms:
        return None

    trimmed = _trim_edges(x, edge_threshold)
    if trimmed.size < MIN_TRIMMED_SAMPLES:
        return None

    c = signal.correlate(trimmed, trimmed, mode='full', method='fft')[trimmed.size - 1:]
    if c[0] <= 0.0:
        return None

    # Skip the lobe around lag 0
    rising = np.flatnonzero(np.diff(c) >= 0.0)
    start = int(rising[0]) if rising.size else c.size - 1

    peak = start + int(np.argmax(c[start:]))
    if peak < 1 or peak >= c.size - 1:
        return None

    peak_value = float(c[peak])
    x1, x2, x3 = c[peak - 1], c[peak], c[peak + 1]
    a = (x1 + x3 - 2.0 * x2) / 2.0
    b = (x3 - x1) / 2.0
    refined = peak - b / (2.0 * a) if a else float(peak)
    if refined <= 0.0 or not np.isfinite(refined):
        return None

    confidence = float(np.clip(peak_value / c[0], 0.0, 1.0))
    return PitchEstimate(frequency_hz=float(sample_rate / refined),
                         confidence=confidence, method='autocorrelation')


class PitchEstimator:
    """YIN estimator with an autocorrelation fallback.

    YIN runs on the windowed frame. When it finds nothing, or its confidence
    is at or below ``yin_confidence_threshold``, autocorrelation is run on
    the raw frame instead.

    Example:
        >>> estimator = PitchEstimator()
        >>> estimate = estimator.estimate(frame, 48000, windowed=apply_hann_window(frame))
        >>> if estimate is not None:
        ...     print(f"{estimate.frequency_hz:.1f} Hz via {estimate.method}")
    """

    def __init__(self, yin_threshold: float = DEFAULT_YIN_THRESHOLD,
                 yin_confidence_threshold: float = DEFAULT_YIN_CONFIDENCE_THRESHOLD,
                 silence_rms: float = DEFAULT_SILENCE_RMS,
                 edge_threshold: float = DEFAULT_EDGE_THRESHOLD):
        self.yin_threshold = yin_threshold
        self.yin_confidence_threshold = yin_confidence_threshold
        self.silence_rms = silence_rms
        self.edge_threshold = edge_threshold

    def estimate(self, frame: np.ndarray, sample_rate: float,
                 windowed: Optional[np.ndarray] = None) -> Optional[PitchEstimate]:
        """Estimate the pitch of one frame.

        Args:
            frame: Unwindowed samples
            sample_rate: Sample rate in Hz
            windowed: Pre-windowed copy of ``frame``; used as-is for YIN when given

        Returns:
            PitchEstimate or None
        """
        yin_input = frame if windowed is None else windowed
        result = yin_pitch(yin_input, sample_rate, threshold=self.yin_threshold)
        if result is not None and result.confidence > self.yin_confidence_threshold:
            return result

        fallback = autocorrelation_pitch(frame, sample_rate,
                                         silence_rms=self.silence_rms,
                                         edge_threshold=self.edge_threshold)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug(f"YIN result {result} rejected, autocorrelation gave {fallback}")
        return fallback
