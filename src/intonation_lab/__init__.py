"""Intonation Lab: real-time pitch, intonation and harmonic analysis"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .engine.analysis_engine import AnalysisEngine
    from .engine.config import EngineConfiguration
    from .engine.driver import CycleDriver
    from .engine.offline import stream_signal, analyze_signal
    from .engine.publisher import AnalysisFrame, NoteEventMessage, NoteEventsCleared
    from .analysis.segmentation import NoteEvent
    from .utils.config_loader import load_config
    from .utils.logging_config import setup_logging

__version__ = "1.0.0"

__all__ = [
    'AnalysisEngine',
    'EngineConfiguration',
    'CycleDriver',
    'stream_signal',
    'analyze_signal',
    'AnalysisFrame',
    'NoteEventMessage',
    'NoteEventsCleared',
    'NoteEvent',
    'load_config',
    'setup_logging'
]

_LAZY_IMPORTS = {
    'AnalysisEngine': '.engine.analysis_engine',
    'EngineConfiguration': '.engine.config',
    'CycleDriver': '.engine.driver',
    'stream_signal': '.engine.offline',
    'analyze_signal': '.engine.offline',
    'AnalysisFrame': '.engine.publisher',
    'NoteEventMessage': '.engine.publisher',
    'NoteEventsCleared': '.engine.publisher',
    'NoteEvent': '.analysis.segmentation',
    'load_config': '.utils.config_loader',
    'setup_logging': '.utils.logging_config',
}

# Module-level cache for lazy-loaded components
_module_cache = {}


def __getattr__(name):
    """Lazy import mechanism for Intonation Lab components.

    Keeps ``import intonation_lab`` cheap: numpy and scipy are only loaded
    when an analysis component is first accessed.
    """
    if name not in _LAZY_IMPORTS:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")

    # Check cache first
    if name in _module_cache:
        return _module_cache[name]

    import importlib
    module = importlib.import_module(_LAZY_IMPORTS[name], __name__)
    value = getattr(module, name)
    _module_cache[name] = value
    return value
