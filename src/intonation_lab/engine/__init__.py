"""Analysis engine, configuration, publisher and cycle driver"""

from .config import EngineConfiguration, NOISE_GATE_AUTO
from .publisher import (
    PitchReading,
    NO_PITCH,
    AnalysisFrame,
    NoteEventMessage,
    NoteEventsCleared,
    Publisher,
    Subscription
)
from .driver import CycleDriver
from .analysis_engine import AnalysisEngine, EngineState
from .offline import stream_signal, analyze_signal

__all__ = [
    'EngineConfiguration',
    'NOISE_GATE_AUTO',
    'PitchReading',
    'NO_PITCH',
    'AnalysisFrame',
    'NoteEventMessage',
    'NoteEventsCleared',
    'Publisher',
    'Subscription',
    'CycleDriver',
    'AnalysisEngine',
    'EngineState',
    'stream_signal',
    'analyze_signal'
]
