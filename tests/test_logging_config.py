"""Tests for structured logging setup"""

import json
import logging
import sys

import pytest

from intonation_lab.utils.logging_config import (
    ColoredFormatter,
    JSONFormatter,
    LogContext,
    log_execution_time,
    setup_logging,
)


@pytest.fixture
def restore_logging(monkeypatch):
    """Put the root logger and excepthook back after setup_logging()."""
    for key in ('LOG_LEVEL', 'LOG_FORMAT', 'LOG_DIR'):
        monkeypatch.delenv(key, raising=False)
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    excepthook = sys.excepthook
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)
    sys.excepthook = excepthook


def make_record(msg='hello', level=logging.INFO, **extra):
    record = logging.LogRecord('intonation_lab.test', level, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.mark.unit
class TestFormatters:
    """Test JSON and coloured formatters"""

    def test_json_formatter_fields(self):
        data = json.loads(JSONFormatter().format(make_record(cycles=12)))

        assert data['message'] == 'hello'
        assert data['level'] == 'INFO'
        assert data['logger'] == 'intonation_lab.test'
        assert data['cycles'] == 12

    def test_json_formatter_handles_non_json_values(self, tmp_path):
        data = json.loads(JSONFormatter().format(make_record(path=tmp_path)))
        assert data['path'] == str(tmp_path)

    def test_json_formatter_includes_exception(self):
        try:
            raise ValueError("bad frame")
        except ValueError:
            record = make_record(level=logging.ERROR)
            record.exc_info = sys.exc_info()
        data = json.loads(JSONFormatter().format(record))
        assert 'bad frame' in data['exception']

    def test_colored_formatter_leaves_record_untouched(self):
        record = make_record(level=logging.WARNING)
        output = ColoredFormatter('%(levelname)s %(message)s').format(record)
        assert '\033[33m' in output
        assert record.levelname == 'WARNING'


@pytest.mark.unit
class TestSetupLogging:
    """Test root logger configuration"""

    def test_console_only_by_default(self, restore_logging):
        setup_logging({'level': 'DEBUG', 'format': 'json'})
        root = logging.getLogger()

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONFormatter)

    def test_environment_takes_precedence(self, restore_logging, monkeypatch):
        monkeypatch.setenv('LOG_LEVEL', 'WARNING')
        setup_logging({'level': 'DEBUG'})
        assert logging.getLogger().level == logging.WARNING

    def test_log_dir_adds_rotating_files(self, restore_logging, tmp_path):
        setup_logging({'level': 'INFO', 'format': 'text', 'log_dir': str(tmp_path)})
        logging.getLogger('intonation_lab.test').error("cycle failed")
        for handler in logging.getLogger().handlers:
            handler.flush()

        assert (tmp_path / 'intonation_lab.log').exists()
        assert 'cycle failed' in (tmp_path / 'error.log').read_text()


@pytest.mark.unit
class TestLogHelpers:
    """Test LogContext and log_execution_time"""

    def test_log_context_adds_fields(self, caplog):
        logger = logging.getLogger('intonation_lab.test')
        with caplog.at_level(logging.INFO):
            with LogContext(input='take1.wav'):
                logger.info("inside")
            logger.info("outside")

        inside, outside = caplog.records[-2:]
        assert inside.input == 'take1.wav'
        assert not hasattr(outside, 'input')

    def test_log_execution_time(self, caplog):
        @log_execution_time("Unit operation")
        def work(x):
            return x * 2

        with caplog.at_level(logging.INFO):
            assert work(21) == 42
        assert "Unit operation completed" in caplog.text

    def test_log_execution_time_reraises(self, caplog):
        @log_execution_time("Failing operation")
        def fail():
            raise RuntimeError("nope")

        with caplog.at_level(logging.ERROR):
            with pytest.raises(RuntimeError):
                fail()
        assert "Failing operation failed" in caplog.text
