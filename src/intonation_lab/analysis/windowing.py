"""Windowing and level measurement for time-domain frames."""

from typing import Union

import numpy as np
from scipy.signal import windows


def hann_window(length: int) -> np.ndarray:
    """Symmetric Hann window, ``w[i] = 0.5 * (1 - cos(2*pi*i / (N - 1)))``.

    Args:
        length: Number of samples in the window

    Returns:
        Window coefficients as float64 array
    """
    return windows.hann(length, sym=True)


def apply_hann_window(frame: Union[np.ndarray, list]) -> np.ndarray:
    """Return a windowed copy of ``frame``; the input is left untouched."""
    samples = np.asarray(frame, dtype=np.float64)
    if samples.size == 0:
        return samples.copy()
    return samples * hann_window(samples.size)


def calculate_rms(frame: Union[np.ndarray, list]) -> float:
    """Root-mean-square level of an (unwindowed) frame.

    Returns 0.0 for an empty frame.
    """
    samples = np.asarray(frame, dtype=np.float64)
    if samples.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(samples * samples)))
