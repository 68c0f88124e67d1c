"""Equal-tempered note classification and interval helpers."""

import math
from dataclasses import dataclass
from typing import Dict, NamedTuple, Optional

NOTE_NAMES = ['C', 'C#', 'D', 'D#', 'E', 'F', 'F#', 'G', 'G#', 'A', 'A#', 'B']

DEFAULT_REFERENCE_PITCH = 440.0
A4_MIDI = 69
MIN_CLASSIFIABLE_FREQUENCY = 20.0

# Display placeholder for "no note"
NO_NOTE_NAME = '--'

_FLAT_TO_SHARP = {
    'DB': 'C#', 'EB': 'D#', 'FB': 'E', 'GB': 'F#', 'AB': 'G#', 'BB': 'A#',
    'E#': 'F',
}

INTERVAL_NAMES = {
    0: 'Unison',
    1: 'm2',
    2: 'M2',
    3: 'm3',
    4: 'M3',
    5: 'P4',
    6: 'TT',
    7: 'P5',
    8: 'm6',
    9: 'M6',
    10: 'm7',
    11: 'M7',
    12: 'P8',
}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class IntonationThresholds(NamedTuple):
    """Cents limits for the in-tune and warning bands."""
    in_tune: int
    warning: int


SENSITIVITY_RANGES: Dict[str, IntonationThresholds] = {
    'wide': IntonationThresholds(15, 30),
    'medium': IntonationThresholds(10, 20),
    'fine': IntonationThresholds(5, 12),
    'ultrafine': IntonationThresholds(3, 7),
}


@dataclass(frozen=True)
class NoteClassification:
    """Nearest equal-tempered note for a frequency.

    Attributes:
        note_name: Pitch class, one of NOTE_NAMES
        octave: Scientific octave number (A4 = 440 Hz)
        cents: Signed deviation from the note, nominally -50..+50
        midi_number: MIDI note number (A4 = 69)
    """
    note_name: str
    octave: int
    cents: int
    midi_number: int

    @property
    def label(self) -> str:
        return f"{self.note_name}{self.octave}"


def frequency_to_note(frequency_hz: float,
                      reference_pitch: float = DEFAULT_REFERENCE_PITCH) -> Optional[NoteClassification]:
    """Classify a frequency against the equal-tempered scale.

    Args:
        frequency_hz: Frequency in Hz
        reference_pitch: Frequency of A4 in Hz

    Returns:
        NoteClassification, or None for frequencies below 20 Hz or non-finite input

    Examples:
        >>> frequency_to_note(440.0)
        NoteClassification(note_name='A', octave=4, cents=0, midi_number=69)
        >>> frequency_to_note(261.63).label
        'C4'
    """
    if frequency_hz is None or not math.isfinite(frequency_hz) or frequency_hz < MIN_CLASSIFIABLE_FREQUENCY:
        return None

    note_number = 12.0 * math.log2(frequency_hz / reference_pitch)
    nearest = _round_half_up(note_number)
    midi_number = int(nearest) + A4_MIDI
    note_index = midi_number % 12
    octave = math.floor(midi_number / 12) - 1
    cents = _round_half_up((note_number - nearest) * 100)

    return NoteClassification(
        note_name=NOTE_NAMES[note_index],
        octave=octave,
        cents=cents,
        midi_number=midi_number
    )


def normalize_note_name(note: str) -> str:
    """Map unicode accidentals and flats onto the sharp spelling used in NOTE_NAMES.

    Raises:
        ValueError: If the name is not a recognizable pitch class
    """
    name = note.strip().replace('♯', '#').replace('♭', 'b')
    if not name:
        raise ValueError(f"Invalid note name: {note!r}")
    name = name.upper()
    name = _FLAT_TO_SHARP.get(name, name)
    if name not in NOTE_NAMES:
        raise ValueError(f"Invalid note name: {note!r}")
    return name


def note_to_midi(note: str, octave: int) -> int:
    """MIDI number of a pitch class in a given octave (C4 = 60)."""
    return (octave + 1) * 12 + NOTE_NAMES.index(normalize_note_name(note))


def midi_to_frequency(midi_number: float, reference_pitch: float = DEFAULT_REFERENCE_PITCH) -> float:
    """Convert a (possibly fractional) MIDI number to Hz."""
    return reference_pitch * 2.0 ** ((midi_number - A4_MIDI) / 12.0)


def note_to_frequency(note: str, octave: int, cents: float = 0.0,
                      reference_pitch: float = DEFAULT_REFERENCE_PITCH) -> float:
    """Frequency of a note, the inverse of ``frequency_to_note``.

    Args:
        note: Pitch class ('A', 'C#', 'Eb', 'F♯', ...)
        octave: Octave number
        cents: Optional deviation to apply on top of the tempered note
        reference_pitch: Frequency of A4 in Hz

    Returns:
        Frequency in Hz

    Raises:
        ValueError: If the note name is invalid
    """
    midi_number = note_to_midi(note, octave)
    return midi_to_frequency(midi_number + cents / 100.0, reference_pitch)


def interval_name(semitones: int) -> str:
    """Short interval name for a signed semitone distance.

    Examples:
        >>> interval_name(7)
        'P5'
        >>> interval_name(-12)
        'P8'
        >>> interval_name(19)
        '1oct+P5'
    """
    distance = abs(int(semitones))
    octaves, remainder = divmod(distance, 12)

    if octaves == 0:
        return INTERVAL_NAMES[remainder]
    if octaves == 1 and remainder == 0:
        return INTERVAL_NAMES[12]
    if remainder == 0:
        return f"{octaves}oct"
    return f"{octaves}oct+{INTERVAL_NAMES[remainder]}"


def interval_direction(semitones: int) -> str:
    if semitones > 0:
        return 'up'
    if semitones < 0:
        return 'down'
    return 'same'


def get_intonation_thresholds(sensitivity_range: str) -> IntonationThresholds:
    """Thresholds for a sensitivity range, falling back to 'medium' for unknown names."""
    return SENSITIVITY_RANGES.get(sensitivity_range, SENSITIVITY_RANGES['medium'])


def intonation_color(cents: float, sensitivity_range: str = 'medium') -> str:
    """Colour band for a cents deviation: 'green', 'orange' or 'red'."""
    thresholds = get_intonation_thresholds(sensitivity_range)
    deviation = abs(cents)
    if deviation <= thresholds.in_tune:
        return 'green'
    if deviation <= thresholds.warning:
        return 'orange'
    return 'red'
