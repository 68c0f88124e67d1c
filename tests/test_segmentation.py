"""Tests for the note segmentation state machine"""

import pytest

from intonation_lab.analysis.note_classifier import frequency_to_note, note_to_frequency
from intonation_lab.analysis.segmentation import NoteEvent, NoteSegmenter, SegmentationState
from intonation_lab.buffers.rolling import NoteEventLog


def classify(name: str, octave: int, cents: float = 0.0):
    return frequency_to_note(note_to_frequency(name, octave, cents=cents))


class Feeder:
    """Drives a segmenter on a 10 ms virtual clock."""

    def __init__(self, segmenter: NoteSegmenter):
        self.segmenter = segmenter
        self.now = 0.0
        self.closed = []

    def feed(self, classification, frames: int = 1, confidence: float = 0.95):
        for _ in range(frames):
            self.now += 10.0
            frequency = 0.0 if classification is None else note_to_frequency(
                classification.note_name, classification.octave)
            event = self.segmenter.update(classification, frequency, confidence, self.now)
            if event is not None:
                self.closed.append(event)
        return self


@pytest.fixture
def log():
    return NoteEventLog()


@pytest.fixture
def feeder(log):
    return Feeder(NoteSegmenter(log))


@pytest.mark.unit
class TestNoteSegmenter:
    """Test stability counting, opening and closing"""

    def test_initial_state(self, feeder):
        assert feeder.segmenter.state == SegmentationState.SILENT
        assert not feeder.segmenter.has_open_note

    def test_eight_frames_do_not_open_a_note(self, feeder):
        feeder.feed(classify('A', 4), frames=8)
        assert feeder.segmenter.state == SegmentationState.STABILIZING
        assert feeder.segmenter.stability_count == 7

    def test_ninth_frame_opens_a_note(self, feeder):
        feeder.feed(classify('A', 4), frames=9)
        assert feeder.segmenter.state == SegmentationState.SUSTAINED
        assert feeder.segmenter.has_open_note

    def test_note_change_closes_open_note(self, feeder, log):
        feeder.feed(classify('A', 4), frames=12).feed(classify('B', 4))

        assert len(feeder.closed) == 1
        event = feeder.closed[0]
        assert isinstance(event, NoteEvent)
        assert event.label == 'A4'
        assert event.start_time == 90.0
        assert event.end_time == 130.0
        assert event.duration_ms == 40.0
        assert event.midi_number == 69
        assert event.interval_semitones is None
        assert event.direction is None
        assert log.snapshot() == (event,)

    def test_short_notes_produce_no_event(self, feeder):
        for name in ['C', 'D', 'E', 'F', 'G']:
            feeder.feed(classify(name, 4), frames=5)
        feeder.feed(None)
        assert feeder.closed == []

    def test_silence_closes_note_and_resets(self, feeder):
        feeder.feed(classify('G', 3), frames=10).feed(None)

        assert len(feeder.closed) == 1
        assert feeder.segmenter.state == SegmentationState.SILENT
        assert feeder.segmenter.stability_count == 0

    def test_low_confidence_closes_note(self, feeder):
        feeder.feed(classify('A', 4), frames=10).feed(classify('A', 4), confidence=0.5)
        assert len(feeder.closed) == 1
        assert feeder.segmenter.state == SegmentationState.STABILIZING

    def test_low_confidence_frames_never_open(self, feeder):
        feeder.feed(classify('A', 4), frames=50, confidence=0.7)
        assert feeder.segmenter.state == SegmentationState.STABILIZING
        assert feeder.segmenter.stability_count == 0

    def test_cents_variation_within_same_note_keeps_note_open(self, feeder):
        feeder.feed(classify('A', 4, cents=-10), frames=9)
        feeder.feed(classify('A', 4, cents=15), frames=5)
        assert feeder.closed == []
        assert feeder.segmenter.has_open_note

    def test_event_reports_opening_classification(self, feeder):
        feeder.feed(classify('A', 4, cents=12), frames=9)
        feeder.feed(classify('A', 4, cents=-3), frames=5).feed(None)
        assert feeder.closed[0].cents == 12

    def test_interval_to_previous_event(self, feeder):
        feeder.feed(classify('A', 4), frames=10).feed(None)
        feeder.feed(classify('E', 5), frames=10).feed(None)
        feeder.feed(classify('C', 5), frames=10).feed(None)

        first, second, third = feeder.closed
        assert second.interval_semitones == 7
        assert second.direction == 'up'
        assert second.interval_name == 'P5'
        assert third.interval_semitones == -4
        assert third.direction == 'down'
        assert third.interval_name == 'M3'

    def test_event_ids_increase(self, feeder):
        for _ in range(3):
            feeder.feed(classify('D', 4), frames=10).feed(None)
        assert [e.id for e in feeder.closed] == [1, 2, 3]

    def test_release_discards_open_note(self, feeder, log):
        feeder.feed(classify('A', 4), frames=10)
        feeder.segmenter.release()

        assert feeder.segmenter.state == SegmentationState.SILENT
        assert len(log) == 0
        feeder.feed(None)
        assert feeder.closed == []

    def test_custom_stability_requirement(self, log):
        feeder = Feeder(NoteSegmenter(log, required_frames=2))
        feeder.feed(classify('A', 4), frames=3)
        assert feeder.segmenter.has_open_note

    def test_no_overlapping_events(self, feeder):
        for name in ['C', 'E', 'G', 'C']:
            feeder.feed(classify(name, 4), frames=12)
        feeder.feed(None)

        events = feeder.closed
        assert len(events) == 4
        for earlier, later in zip(events, events[1:]):
            assert earlier.end_time <= later.start_time
