"""Utilities module for Intonation Lab"""

# Configuration utilities
from .config_loader import (
    load_config,
    load_config_with_defaults,
    load_config_from_file,
    merge_configs,
    load_config_from_env,
    validate_config,
    DEFAULT_CONFIG
)

# Logging utilities
from .logging_config import (
    setup_logging,
    JSONFormatter,
    ColoredFormatter,
    LogContext,
    log_execution_time
)

__all__ = [
    'load_config',
    'load_config_with_defaults',
    'load_config_from_file',
    'merge_configs',
    'load_config_from_env',
    'validate_config',
    'DEFAULT_CONFIG',
    'setup_logging',
    'JSONFormatter',
    'ColoredFormatter',
    'LogContext',
    'log_execution_time'
]
