"""Typed engine configuration."""

import dataclasses
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from ..analysis.note_classifier import SENSITIVITY_RANGES, IntonationThresholds
from ..exceptions import ConfigurationError

NOISE_GATE_AUTO = 'auto'


@dataclass(frozen=True)
class EngineConfiguration:
    """Configuration for an AnalysisEngine.

    ``fft_size``, ``smoothing_time_constant``, ``pitch_smoothing``,
    ``noise_gate`` and ``sensitivity_range`` are the user-facing options;
    the remaining fields expose the detector constants so they can be tuned
    independently.
    """
    # User-facing options
    fft_size: int = 4096
    smoothing_time_constant: float = 0.3
    pitch_smoothing: float = 0.15
    noise_gate: Union[str, float] = NOISE_GATE_AUTO
    sensitivity_range: str = 'medium'
    reference_pitch: float = 440.0
    sample_rate: int = 48000

    # Pitch estimation
    yin_threshold: float = 0.15
    yin_confidence_threshold: float = 0.7
    autocorrelation_silence_rms: float = 0.008
    autocorrelation_edge_threshold: float = 0.15
    min_frequency: float = 60.0
    max_frequency: float = 4000.0

    # Segmentation and harmonics
    stability_frames: int = 8
    stability_confidence: float = 0.7
    num_partials: int = 16
    waveform_size: int = 2048

    # Adaptive noise gate
    auto_gate_floor: float = 0.01
    auto_gate_initial: float = 0.015
    auto_gate_decay: float = 0.95
    auto_gate_rms_weight: float = 0.05
    auto_gate_rms_scale: float = 0.3

    # Retention
    history_retention_ms: float = 60000.0
    max_note_events: int = 100
    capture_retention_ms: float = 60000.0
    capture_chunk_size: int = 4096

    @classmethod
    def from_dict(cls, config: Optional[Dict[str, Any]] = None) -> 'EngineConfiguration':
        """Build a configuration from a loaded config dict.

        Accepts either the full nested config (``engine``, ``buffers`` and
        ``audio`` sections) or a flat mapping of field names. Unknown keys
        are ignored.
        """
        if not config:
            return cls().validate()

        flat: Dict[str, Any] = {}
        if any(section in config for section in ('engine', 'buffers', 'audio')):
            for section in ('audio', 'buffers', 'engine'):
                flat.update(config.get(section) or {})
        else:
            flat.update(config)

        names = {f.name for f in dataclasses.fields(cls)}
        return cls(**{k: v for k, v in flat.items() if k in names}).validate()

    def replace(self, **changes: Any) -> 'EngineConfiguration':
        """Return a validated copy with ``changes`` applied."""
        return dataclasses.replace(self, **changes).validate()

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)

    @property
    def is_auto_gate(self) -> bool:
        return self.noise_gate == NOISE_GATE_AUTO

    @property
    def frequency_bin_count(self) -> int:
        return self.fft_size // 2

    @property
    def intonation_thresholds(self) -> IntonationThresholds:
        return SENSITIVITY_RANGES[self.sensitivity_range]

    def validate(self) -> 'EngineConfiguration':
        """Check field values.

        Returns:
            self, so calls can be chained

        Raises:
            ConfigurationError: If any value is invalid
        """
        if not isinstance(self.fft_size, int) or self.fft_size < 32 or self.fft_size & (self.fft_size - 1):
            raise ConfigurationError(f"fft_size must be a power of two >= 32, got {self.fft_size}")
        if not 0.0 <= self.smoothing_time_constant < 1.0:
            raise ConfigurationError(
                f"smoothing_time_constant must be in [0, 1), got {self.smoothing_time_constant}"
            )
        if not 0.0 <= self.pitch_smoothing < 1.0:
            raise ConfigurationError(f"pitch_smoothing must be in [0, 1), got {self.pitch_smoothing}")
        if self.noise_gate != NOISE_GATE_AUTO:
            if isinstance(self.noise_gate, bool) or not isinstance(self.noise_gate, (int, float)) \
                    or self.noise_gate < 0:
                raise ConfigurationError(
                    f"noise_gate must be 'auto' or a non-negative RMS level, got {self.noise_gate!r}"
                )
        if self.sensitivity_range not in SENSITIVITY_RANGES:
            raise ConfigurationError(
                f"sensitivity_range must be one of {sorted(SENSITIVITY_RANGES)}, "
                f"got {self.sensitivity_range!r}"
            )
        if self.reference_pitch <= 0:
            raise ConfigurationError(f"Invalid reference_pitch: {self.reference_pitch}")
        if not isinstance(self.sample_rate, int) or self.sample_rate <= 0:
            raise ConfigurationError(f"Invalid sample_rate: {self.sample_rate}")
        if not 0 < self.min_frequency < self.max_frequency:
            raise ConfigurationError(
                f"Invalid frequency range: {self.min_frequency}-{self.max_frequency} Hz"
            )
        if self.stability_frames < 1:
            raise ConfigurationError(f"stability_frames must be >= 1, got {self.stability_frames}")
        if self.num_partials < 1:
            raise ConfigurationError(f"num_partials must be >= 1, got {self.num_partials}")
        if self.waveform_size < 1:
            raise ConfigurationError(f"waveform_size must be >= 1, got {self.waveform_size}")
        if self.history_retention_ms <= 0 or self.capture_retention_ms <= 0:
            raise ConfigurationError("Retention windows must be positive")
        if self.max_note_events < 1:
            raise ConfigurationError(f"max_note_events must be >= 1, got {self.max_note_events}")
        if self.capture_chunk_size < 1:
            raise ConfigurationError(f"capture_chunk_size must be >= 1, got {self.capture_chunk_size}")
        return self
