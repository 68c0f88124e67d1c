"""Byte-quantized magnitude spectrum, as produced by a browser analyser node.

Live hosts normally receive this spectrum from their audio stack. Offline
hosts and tests use ``SpectrumAnalyzer`` to produce the same kind of input.
"""

from typing import Optional

import numpy as np
from scipy.signal import windows

DEFAULT_MIN_DECIBELS = -100.0
DEFAULT_MAX_DECIBELS = -30.0


class SpectrumAnalyzer:
    """Blackman-windowed FFT magnitude with temporal smoothing.

    Args:
        fft_size: Frame length (power of two)
        smoothing_time_constant: Weight of the previous spectrum in [0, 1)
        min_decibels: Level mapped to byte value 0
        max_decibels: Level mapped to byte value 255
    """

    def __init__(self, fft_size: int = 4096, smoothing_time_constant: float = 0.3,
                 min_decibels: float = DEFAULT_MIN_DECIBELS,
                 max_decibels: float = DEFAULT_MAX_DECIBELS):
        self.fft_size = fft_size
        self.smoothing_time_constant = smoothing_time_constant
        self.min_decibels = min_decibels
        self.max_decibels = max_decibels
        self._window = windows.blackman(fft_size, sym=False)
        self._previous: Optional[np.ndarray] = None

    @property
    def frequency_bin_count(self) -> int:
        return self.fft_size // 2

    def reset(self) -> None:
        self._previous = None

    def float_magnitudes(self, frame: np.ndarray) -> np.ndarray:
        """Smoothed linear magnitudes for the first ``fft_size / 2`` bins."""
        samples = np.asarray(frame, dtype=np.float64)
        if samples.size != self.fft_size:
            raise ValueError(
                f"Frame has {samples.size} samples, analyser expects {self.fft_size}"
            )

        magnitude = np.abs(np.fft.rfft(samples * self._window))[:self.frequency_bin_count]
        magnitude /= self.fft_size

        if self._previous is not None:
            tau = self.smoothing_time_constant
            magnitude = tau * self._previous + (1.0 - tau) * magnitude
        self._previous = magnitude
        return magnitude

    def byte_frequency_data(self, frame: np.ndarray) -> np.ndarray:
        """Spectrum quantized to 0..255 over the analyser's decibel range."""
        magnitude = self.float_magnitudes(frame)
        with np.errstate(divide='ignore'):
            decibels = 20.0 * np.log10(magnitude)
        scale = 255.0 / (self.max_decibels - self.min_decibels)
        scaled = np.floor(scale * (decibels - self.min_decibels))
        return np.clip(np.nan_to_num(scaled, nan=0.0, neginf=0.0), 0, 255).astype(np.uint8)
