"""Per-frame signal analysis: windowing, pitch, notes, harmonics and segmentation"""

from .windowing import hann_window, apply_hann_window, calculate_rms
from .pitch_estimator import PitchEstimate, PitchEstimator, yin_pitch, autocorrelation_pitch
from .note_classifier import (
    NOTE_NAMES,
    SENSITIVITY_RANGES,
    NoteClassification,
    IntonationThresholds,
    frequency_to_note,
    note_to_frequency,
    note_to_midi,
    midi_to_frequency,
    interval_name,
    interval_direction,
    intonation_color,
    get_intonation_thresholds
)
from .harmonics import HarmonicPartial, PARTIAL_NAMES, calculate_harmonics, partial_label
from .segmentation import NoteEvent, NoteSegmenter, SegmentationState
from .spectrum import SpectrumAnalyzer

__all__ = [
    'hann_window',
    'apply_hann_window',
    'calculate_rms',
    'PitchEstimate',
    'PitchEstimator',
    'yin_pitch',
    'autocorrelation_pitch',
    'NOTE_NAMES',
    'SENSITIVITY_RANGES',
    'NoteClassification',
    'IntonationThresholds',
    'frequency_to_note',
    'note_to_frequency',
    'note_to_midi',
    'midi_to_frequency',
    'interval_name',
    'interval_direction',
    'intonation_color',
    'get_intonation_thresholds',
    'HarmonicPartial',
    'PARTIAL_NAMES',
    'calculate_harmonics',
    'partial_label',
    'NoteEvent',
    'NoteSegmenter',
    'SegmentationState',
    'SpectrumAnalyzer'
]
