"""Harmonic partial extraction from a magnitude spectrum."""

import math
from dataclasses import dataclass
from typing import List, Sequence, Union

import numpy as np

DEFAULT_NUM_PARTIALS = 16
# Full-scale value of byte-quantized analyser spectra
BYTE_SPECTRUM_MAX = 255.0

PARTIAL_NAMES = ['Root', '8ve', 'P5+8ve', '2×8ve', 'M3+2×8ve', 'P5+2×8ve', 'm7+2×8ve', '3×8ve']


@dataclass(frozen=True)
class HarmonicPartial:
    """Energy and tuning of one harmonic of the fundamental."""
    partial_index: int
    frequency_hz: float
    normalized_energy: float
    cents_offset: int
    label: str


def partial_label(partial_index: int) -> str:
    if 1 <= partial_index <= len(PARTIAL_NAMES):
        return PARTIAL_NAMES[partial_index - 1]
    return f"P{partial_index}"


def calculate_harmonics(spectrum: Union[np.ndarray, Sequence[float]],
                        sample_rate: float,
                        fft_size: int,
                        fundamental_hz: float,
                        num_partials: int = DEFAULT_NUM_PARTIALS,
                        max_magnitude: float = BYTE_SPECTRUM_MAX) -> List[HarmonicPartial]:
    """Measure the first ``num_partials`` harmonics of ``fundamental_hz``.

    For each partial the loudest bin within ``max(2, round(i / 2))`` bins of
    the target is taken as its energy. Partials whose target bin lies outside
    the spectrum are skipped.

    Args:
        spectrum: Per-bin magnitudes (``fft_size / 2`` bins)
        sample_rate: Sample rate in Hz
        fft_size: FFT size the spectrum was computed with
        fundamental_hz: Fundamental frequency
        num_partials: Number of partials to examine
        max_magnitude: Magnitude mapped to an energy of 1.0 (255 for byte spectra)

    Returns:
        List of HarmonicPartial, ordered by partial index
    """
    if fundamental_hz is None or not fundamental_hz > 0 or fft_size <= 0:
        return []

    magnitudes = np.asarray(spectrum, dtype=np.float64)
    num_bins = magnitudes.size
    bin_width = sample_rate / fft_size
    partials = []

    for i in range(1, num_partials + 1):
        target_hz = fundamental_hz * i
        bin_index = int(math.floor(target_hz / bin_width + 0.5))
        if bin_index < 0 or bin_index >= num_bins:
            continue

        search_width = max(2, int(math.floor(i * 0.5 + 0.5)))
        low = max(0, bin_index - search_width)
        high = min(num_bins - 1, bin_index + search_width)
        peak = max(0.0, float(magnitudes[low:high + 1].max()))

        actual_hz = bin_index * bin_width
        if actual_hz > 0:
            offset = 1200.0 * math.log2(actual_hz / target_hz)
            cents_offset = int(math.floor(offset + 0.5)) if math.isfinite(offset) else 0
        else:
            cents_offset = 0

        partials.append(HarmonicPartial(
            partial_index=i,
            frequency_hz=target_hz,
            normalized_energy=min(1.0, peak / max_magnitude),
            cents_offset=cents_offset,
            label=partial_label(i)
        ))

    return partials
