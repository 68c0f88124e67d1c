"""
Pytest configuration and shared fixtures for Intonation Lab tests.
"""
import sys
from pathlib import Path
from typing import Callable, List

import pytest
import numpy as np

sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))

from intonation_lab.engine.analysis_engine import AnalysisEngine
from intonation_lab.engine.config import EngineConfiguration


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom settings."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (fast, isolated)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (component interactions)"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests (complete workflows)"
    )
    config.addinivalue_line(
        "markers", "slow: Slow tests (>1 second)"
    )
    config.addinivalue_line(
        "markers", "audio: Audio processing tests"
    )


# ============================================================================
# Audio Fixtures
# ============================================================================

def sine(frequency: float, num_samples: int, sample_rate: int = 48000,
         amplitude: float = 1.0, phase: float = 0.0) -> np.ndarray:
    """Sine wave with an exact sample count."""
    t = np.arange(num_samples) / sample_rate
    return (amplitude * np.sin(2 * np.pi * frequency * t + phase)).astype(np.float32)


@pytest.fixture
def make_sine() -> Callable[..., np.ndarray]:
    """Factory for sine waves: make_sine(frequency, num_samples, sample_rate=48000, amplitude=1.0)."""
    return sine


@pytest.fixture
def sample_rate() -> int:
    return 48000


@pytest.fixture
def a4_frame() -> np.ndarray:
    """4096 samples of a 440 Hz sine at 48kHz."""
    return sine(440.0, 4096)


@pytest.fixture
def silence_frame() -> np.ndarray:
    return np.zeros(4096, dtype=np.float32)


@pytest.fixture
def sample_audio_silence() -> np.ndarray:
    """One second of digital silence at 48kHz."""
    return np.zeros(48000, dtype=np.float32)


# ============================================================================
# Engine Fixtures
# ============================================================================

class MessageRecorder:
    """Observer that keeps every published message."""

    def __init__(self):
        self.messages: List = []

    def __call__(self, message):
        self.messages.append(message)

    def of_type(self, message_type: str) -> List:
        return [m for m in self.messages if m.type == message_type]

    @property
    def types(self) -> List[str]:
        return [m.type for m in self.messages]


@pytest.fixture
def recorder() -> MessageRecorder:
    return MessageRecorder()


@pytest.fixture
def engine_config() -> EngineConfiguration:
    """Small-frame configuration with the noise gate disabled."""
    return EngineConfiguration(fft_size=2048, noise_gate=0.0)


@pytest.fixture
def engine(engine_config: EngineConfiguration):
    """Started engine on a fixed clock; stopped after the test."""
    engine = AnalysisEngine(engine_config, clock=lambda: 0.0)
    engine.start()
    yield engine
    engine.stop()
