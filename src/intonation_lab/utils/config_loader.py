"""Configuration loader module for Intonation Lab."""

import os
import json
import copy
from typing import Optional, Dict, Any
from pathlib import Path

import yaml

# Default configuration
DEFAULT_CONFIG = {
    'engine': {
        'fft_size': 4096,
        'smoothing_time_constant': 0.3,
        'pitch_smoothing': 0.15,
        'noise_gate': 'auto',
        'sensitivity_range': 'medium',
        'reference_pitch': 440.0,
        'yin_threshold': 0.15,
        'yin_confidence_threshold': 0.7,
        'autocorrelation_silence_rms': 0.008,
        'autocorrelation_edge_threshold': 0.15,
        'min_frequency': 60.0,
        'max_frequency': 4000.0,
        'stability_frames': 8,
        'stability_confidence': 0.7,
        'num_partials': 16,
        'waveform_size': 2048,
        'auto_gate_floor': 0.01,
        'auto_gate_initial': 0.015,
        'auto_gate_decay': 0.95,
        'auto_gate_rms_weight': 0.05,
        'auto_gate_rms_scale': 0.3
    },
    'buffers': {
        'history_retention_ms': 60000.0,
        'max_note_events': 100,
        'capture_retention_ms': 60000.0,
        'capture_chunk_size': 4096
    },
    'audio': {
        'sample_rate': 48000
    },
    'driver': {
        'target_fps': 60.0
    },
    'logging': {
        'level': 'INFO',
        'format': 'text',
        'log_dir': None
    }
}

SENSITIVITY_RANGE_NAMES = ['wide', 'medium', 'fine', 'ultrafine']


def load_config_with_defaults() -> Dict[str, Any]:
    """Load configuration with default values.

    Returns:
        Dict containing default configuration
    """
    return copy.deepcopy(DEFAULT_CONFIG)


def load_config_from_file(path: str, strict: bool = False) -> Dict[str, Any]:
    """Load configuration from a file.

    Args:
        path: Path to configuration file (YAML or JSON)
        strict: If True, raise error if file doesn't exist

    Returns:
        Dict containing loaded configuration

    Raises:
        FileNotFoundError: If strict=True and file doesn't exist
        ValueError: If file format is invalid
    """
    config_path = Path(path)

    if not config_path.exists():
        if strict:
            raise FileNotFoundError(f"Configuration file not found: {path}")
        return {}

    suffix = config_path.suffix.lower()

    if suffix == '.json':
        try:
            with open(config_path, 'r') as f:
                loaded = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in config file {path}: {e}")

    elif suffix in ['.yml', '.yaml']:
        try:
            with open(config_path, 'r') as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in config file {path}: {e}")

    else:
        raise ValueError(f"Unsupported config file format: {config_path.suffix}")

    # An empty YAML document loads as None
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValueError(f"Config file {path} must contain a mapping, got {type(loaded).__name__}")
    return loaded


def merge_configs(base: dict, override: dict) -> dict:
    """Deep merge two configuration dictionaries.

    Args:
        base: Base configuration dict
        override: Override configuration dict

    Returns:
        Merged configuration dict (modifies base in-place)
    """
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            merge_configs(base[key], value)
        else:
            base[key] = value
    return base


def _parse_env_value(env_value: str) -> Any:
    # JSON first (numbers, booleans, lists, quoted strings)
    try:
        return json.loads(env_value)
    except (json.JSONDecodeError, ValueError):
        pass

    lowered = env_value.lower()
    if lowered == 'true':
        return True
    if lowered == 'false':
        return False
    if lowered in ('none', 'null'):
        return None
    return env_value


def load_config_from_env(config: dict, prefix: str = 'INTONATION_') -> dict:
    """Load configuration overrides from environment variables.

    Environment variable format:
    - INTONATION_SECTION__KEY for nested values (double underscore)
    - Values are parsed as JSON where possible, otherwise kept as strings
    - Example: INTONATION_ENGINE__FFT_SIZE=2048 or INTONATION_ENGINE__NOISE_GATE=auto

    Args:
        config: Configuration dict to update
        prefix: Environment variable prefix

    Returns:
        Updated configuration dict

    Raises:
        ValueError: If environment variable format is invalid
    """
    if not isinstance(config, dict):
        raise ValueError("Config must be a dictionary")

    for env_key, env_value in os.environ.items():
        if not env_key.startswith(prefix):
            continue

        keys = [k for k in env_key[len(prefix):].lower().split('__') if k]
        if not keys:
            continue

        # Navigate to the target location in config
        current = config
        for key in keys[:-1]:
            if key not in current:
                current[key] = {}
            elif not isinstance(current[key], dict):
                raise ValueError(f"Cannot set {env_key}: '{key}' is not a config section")
            current = current[key]

        current[keys[-1]] = _parse_env_value(env_value)

    return config


def validate_config(config: dict) -> None:
    """Validate configuration structure and values.

    Args:
        config: Configuration dict to validate

    Raises:
        ValueError: If configuration is invalid
    """
    if not isinstance(config, dict):
        raise ValueError("Configuration must be a dictionary")

    if not config:
        raise ValueError("Configuration cannot be empty")

    # Check required sections exist
    required_sections = ['engine', 'buffers', 'audio', 'driver', 'logging']
    for section in required_sections:
        if section not in config:
            raise ValueError(f"Missing required config section: {section}")
        if not isinstance(config[section], dict):
            raise ValueError(f"Config section '{section}' must be a dictionary")

    # Validate engine settings
    engine = config['engine']
    if 'fft_size' in engine:
        fft_size = engine['fft_size']
        if not isinstance(fft_size, int) or fft_size < 32 or fft_size & (fft_size - 1):
            raise ValueError(f"Invalid fft_size: {fft_size}. Must be a power of two >= 32")
    if 'noise_gate' in engine:
        gate = engine['noise_gate']
        if gate != 'auto' and (isinstance(gate, bool) or not isinstance(gate, (int, float)) or gate < 0):
            raise ValueError(f"Invalid noise_gate: {gate}. Must be 'auto' or a non-negative number")
    if 'sensitivity_range' in engine:
        sensitivity = engine['sensitivity_range']
        if sensitivity not in SENSITIVITY_RANGE_NAMES:
            raise ValueError(f"Invalid sensitivity_range: {sensitivity}")
    for key in ('smoothing_time_constant', 'pitch_smoothing'):
        if key in engine:
            value = engine[key]
            if not isinstance(value, (int, float)) or not 0 <= value < 1:
                raise ValueError(f"Invalid {key}: {value}. Must be in [0, 1)")

    # Validate audio settings
    audio = config['audio']
    if 'sample_rate' in audio:
        sr = audio['sample_rate']
        if not isinstance(sr, int) or sr <= 0:
            raise ValueError(f"Invalid sample_rate: {sr}")

    # Validate buffer settings
    buffers = config['buffers']
    for key in ('history_retention_ms', 'capture_retention_ms', 'max_note_events', 'capture_chunk_size'):
        if key in buffers:
            value = buffers[key]
            if not isinstance(value, (int, float)) or value <= 0:
                raise ValueError(f"Invalid {key}: {value}")

    # Validate driver settings
    driver = config['driver']
    if 'target_fps' in driver:
        fps = driver['target_fps']
        if not isinstance(fps, (int, float)) or fps <= 0:
            raise ValueError(f"Invalid target_fps: {fps}")

    # Validate logging settings
    logging = config['logging']
    if 'level' in logging:
        level = logging['level']
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if not isinstance(level, str) or level.upper() not in valid_levels:
            raise ValueError(f"Invalid logging level: {level}")
    if 'format' in logging:
        fmt = logging['format']
        if fmt not in ('json', 'text'):
            raise ValueError(f"Invalid logging format: {fmt}. Must be 'json' or 'text'")


def load_config(config_path: Optional[str] = None, use_defaults: bool = True) -> dict:
    """Load configuration from file, environment, and defaults.

    Loading order:
    1. Start with default configuration (if use_defaults=True)
    2. Merge configuration from file (if config_path provided)
    3. Apply environment variable overrides
    4. Validate final configuration

    Args:
        config_path: Optional path to configuration file
        use_defaults: Whether to use default configuration as base

    Returns:
        Final merged and validated configuration dict

    Raises:
        ValueError: If configuration is invalid
    """
    # Start with defaults if requested
    if use_defaults:
        config = load_config_with_defaults()
    else:
        config = {}

    # Load and merge config file if provided
    if config_path and os.path.exists(config_path):
        file_config = load_config_from_file(config_path, strict=False)
        config = merge_configs(config, file_config)

    # Apply environment variable overrides
    config = load_config_from_env(config)

    # Validate final configuration
    validate_config(config)

    return config


__all__ = [
    'load_config',
    'load_config_with_defaults',
    'load_config_from_file',
    'merge_configs',
    'load_config_from_env',
    'validate_config',
    'DEFAULT_CONFIG'
]
