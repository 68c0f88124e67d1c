"""
Configuration tests for Intonation Lab.

Tests the layered config loader (defaults, files, environment) and the typed
EngineConfiguration built from it.
"""

import json

import pytest
import yaml

from intonation_lab.engine.config import EngineConfiguration, NOISE_GATE_AUTO
from intonation_lab.exceptions import ConfigurationError, IntonationLabError
from intonation_lab.utils.config_loader import (
    DEFAULT_CONFIG,
    load_config,
    load_config_from_env,
    load_config_from_file,
    load_config_with_defaults,
    merge_configs,
    validate_config,
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Remove INTONATION_* overrides inherited from the shell."""
    import os
    for key in list(os.environ):
        if key.startswith('INTONATION_'):
            monkeypatch.delenv(key)


@pytest.mark.unit
class TestDefaultConfig:
    """Test default configuration loading."""

    def test_all_sections_exist(self):
        config = load_config()
        for section in ['engine', 'buffers', 'audio', 'driver', 'logging']:
            assert section in config
            assert isinstance(config[section], dict)

    def test_default_values(self):
        config = load_config()
        assert config['engine']['fft_size'] == 4096
        assert config['engine']['noise_gate'] == 'auto'
        assert config['engine']['sensitivity_range'] == 'medium'
        assert config['buffers']['max_note_events'] == 100
        assert config['audio']['sample_rate'] == 48000
        assert config['driver']['target_fps'] == 60.0

    def test_defaults_are_a_copy(self):
        config = load_config_with_defaults()
        config['engine']['fft_size'] = 1
        assert DEFAULT_CONFIG['engine']['fft_size'] == 4096


@pytest.mark.unit
class TestConfigFiles:
    """Test loading and merging config files."""

    def test_yaml_file_overrides_defaults(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text(yaml.safe_dump({'engine': {'fft_size': 2048, 'noise_gate': 0.02}}))

        config = load_config(str(path))

        assert config['engine']['fft_size'] == 2048
        assert config['engine']['noise_gate'] == 0.02
        assert config['engine']['pitch_smoothing'] == 0.15

    def test_json_file(self, tmp_path):
        path = tmp_path / 'config.json'
        path.write_text(json.dumps({'buffers': {'max_note_events': 20}}))
        assert load_config_from_file(str(path)) == {'buffers': {'max_note_events': 20}}

    def test_empty_yaml_file(self, tmp_path):
        path = tmp_path / 'empty.yaml'
        path.write_text('')
        assert load_config_from_file(str(path)) == {}

    def test_missing_file(self, tmp_path):
        assert load_config_from_file(str(tmp_path / 'missing.yaml')) == {}
        with pytest.raises(FileNotFoundError):
            load_config_from_file(str(tmp_path / 'missing.yaml'), strict=True)

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / 'bad.yaml'
        path.write_text('engine: [unclosed')
        with pytest.raises(ValueError):
            load_config_from_file(str(path))

    def test_unsupported_format(self, tmp_path):
        path = tmp_path / 'config.ini'
        path.write_text('[engine]')
        with pytest.raises(ValueError):
            load_config_from_file(str(path))

    def test_invalid_value_in_file(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text(yaml.safe_dump({'engine': {'fft_size': 1000}}))
        with pytest.raises(ValueError, match='fft_size'):
            load_config(str(path))

    def test_merge_is_deep(self):
        base = {'engine': {'fft_size': 4096, 'pitch_smoothing': 0.15}}
        merged = merge_configs(base, {'engine': {'fft_size': 2048}})
        assert merged == {'engine': {'fft_size': 2048, 'pitch_smoothing': 0.15}}


@pytest.mark.unit
class TestEnvironmentOverrides:
    """Test INTONATION_* environment variables."""

    def test_nested_override(self, monkeypatch):
        monkeypatch.setenv('INTONATION_ENGINE__FFT_SIZE', '2048')
        monkeypatch.setenv('INTONATION_ENGINE__SENSITIVITY_RANGE', 'fine')
        monkeypatch.setenv('INTONATION_DRIVER__TARGET_FPS', '30.5')

        config = load_config()

        assert config['engine']['fft_size'] == 2048
        assert config['engine']['sensitivity_range'] == 'fine'
        assert config['driver']['target_fps'] == 30.5

    def test_string_and_number_gate(self, monkeypatch):
        monkeypatch.setenv('INTONATION_ENGINE__NOISE_GATE', 'auto')
        assert load_config()['engine']['noise_gate'] == 'auto'

        monkeypatch.setenv('INTONATION_ENGINE__NOISE_GATE', '0.05')
        assert load_config()['engine']['noise_gate'] == 0.05

    def test_boolean_and_null_values(self, monkeypatch):
        monkeypatch.setenv('INTONATION_LOGGING__LOG_DIR', 'null')
        monkeypatch.setenv('INTONATION_EXTRA__FLAG', 'True')
        config = load_config_from_env({'logging': {'log_dir': 'logs'}})
        assert config['logging']['log_dir'] is None
        assert config['extra']['flag'] is True

    def test_cannot_descend_into_value(self, monkeypatch):
        monkeypatch.setenv('INTONATION_AUDIO__SAMPLE_RATE__X', '1')
        with pytest.raises(ValueError):
            load_config_from_env({'audio': {'sample_rate': 48000}})

    def test_invalid_override_is_rejected(self, monkeypatch):
        monkeypatch.setenv('INTONATION_AUDIO__SAMPLE_RATE', '-1')
        with pytest.raises(ValueError, match='sample_rate'):
            load_config()


@pytest.mark.unit
class TestValidateConfig:
    """Test structural validation."""

    def test_missing_section(self):
        config = load_config_with_defaults()
        del config['driver']
        with pytest.raises(ValueError, match='driver'):
            validate_config(config)

    def test_empty(self):
        with pytest.raises(ValueError):
            validate_config({})

    @pytest.mark.parametrize('section,key,value', [
        ('engine', 'noise_gate', 'loud'),
        ('engine', 'noise_gate', -0.1),
        ('engine', 'sensitivity_range', 'extreme'),
        ('engine', 'pitch_smoothing', 1.0),
        ('buffers', 'max_note_events', 0),
        ('driver', 'target_fps', 0),
        ('logging', 'level', 'VERBOSE'),
        ('logging', 'format', 'xml'),
    ])
    def test_invalid_values(self, section, key, value):
        config = load_config_with_defaults()
        config[section][key] = value
        with pytest.raises(ValueError):
            validate_config(config)


@pytest.mark.unit
class TestEngineConfiguration:
    """Test the typed engine configuration."""

    def test_defaults(self):
        config = EngineConfiguration()
        assert config.fft_size == 4096
        assert config.noise_gate == NOISE_GATE_AUTO
        assert config.is_auto_gate
        assert config.frequency_bin_count == 2048
        assert config.intonation_thresholds == (10, 20)

    def test_from_loaded_config(self, monkeypatch):
        monkeypatch.setenv('INTONATION_ENGINE__FFT_SIZE', '8192')
        monkeypatch.setenv('INTONATION_BUFFERS__MAX_NOTE_EVENTS', '10')
        monkeypatch.setenv('INTONATION_AUDIO__SAMPLE_RATE', '44100')

        config = EngineConfiguration.from_dict(load_config())

        assert config.fft_size == 8192
        assert config.max_note_events == 10
        assert config.sample_rate == 44100

    def test_from_flat_dict_ignores_unknown_keys(self):
        config = EngineConfiguration.from_dict({'fft_size': 1024, 'colour_scheme': 'dark'})
        assert config.fft_size == 1024

    def test_from_empty(self):
        assert EngineConfiguration.from_dict(None) == EngineConfiguration()

    def test_replace_validates(self):
        config = EngineConfiguration()
        assert config.replace(noise_gate=0.02).noise_gate == 0.02
        with pytest.raises(ConfigurationError):
            config.replace(fft_size=3000)
        assert config.fft_size == 4096

    @pytest.mark.parametrize('changes', [
        {'fft_size': 1000},
        {'fft_size': 16},
        {'pitch_smoothing': -0.1},
        {'smoothing_time_constant': 1.0},
        {'noise_gate': 'loud'},
        {'noise_gate': True},
        {'sensitivity_range': 'extreme'},
        {'reference_pitch': 0},
        {'min_frequency': 5000.0},
        {'stability_frames': 0},
        {'max_note_events': 0},
    ])
    def test_invalid(self, changes):
        with pytest.raises(ConfigurationError):
            EngineConfiguration(**changes).validate()

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            EngineConfiguration(fft_size=1000).validate()
        assert issubclass(ConfigurationError, IntonationLabError)

    def test_to_dict_round_trip(self):
        config = EngineConfiguration(fft_size=2048, sensitivity_range='fine')
        assert EngineConfiguration.from_dict(config.to_dict()) == config
