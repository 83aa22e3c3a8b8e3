import json
import logging
import logging.handlers

import pytest

from realtime_voice.core.config_models import LoggingConfig
from realtime_voice.utils.logging_setup import JsonFormatter, session_logger, setup_logging


def owned_handlers():
    return [h for h in logging.getLogger().handlers if getattr(h, "_realtime_voice_handler", False)]


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


class TestSetupLogging:

    def test_defaults(self):
        setup_logging()

        assert logging.getLogger().level == logging.INFO
        assert len(owned_handlers()) == 1

    def test_repeated_setup_replaces_own_handlers_only(self):
        foreign = logging.NullHandler()
        logging.getLogger().addHandler(foreign)

        setup_logging()
        setup_logging({"level": "DEBUG"})

        assert len(owned_handlers()) == 1
        assert foreign in logging.getLogger().handlers
        assert logging.getLogger().level == logging.DEBUG

    def test_quiet_loggers(self):
        setup_logging({"quiet_loggers": {"noisy.lib": "error"}})

        assert logging.getLogger("noisy.lib").level == logging.ERROR

    def test_accepts_app_config_dict(self):
        setup_logging({"logging": {"level": "warning"}})

        assert logging.getLogger().level == logging.WARNING

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "logs" / "app.log"

        setup_logging(LoggingConfig(file_path=str(log_file), max_bytes=1024, backup_count=2))

        file_handlers = [
            h for h in owned_handlers() if isinstance(h, logging.handlers.RotatingFileHandler)
        ]
        assert len(file_handlers) == 1
        assert file_handlers[0].backupCount == 2
        assert log_file.parent.is_dir()

    def test_invalid_level(self):
        with pytest.raises(ValueError):
            LoggingConfig(level="LOUD")


class TestJsonFormatter:

    def test_format(self):
        record = logging.LogRecord("realtime-voice", logging.INFO, __file__, 10, "hello %s", ("world",), None)
        record.session_id = "s1"

        payload = json.loads(JsonFormatter().format(record))

        assert payload["message"] == "hello world"
        assert payload["level"] == "INFO"
        assert payload["session_id"] == "s1"

    def test_omits_missing_context(self):
        record = logging.LogRecord("realtime-voice", logging.WARNING, __file__, 10, "plain", (), None)

        payload = json.loads(JsonFormatter().format(record))

        assert "session_id" not in payload
        assert payload["level"] == "WARNING"


class TestSessionLogger:

    def test_attaches_session_id(self, caplog):
        with caplog.at_level(logging.INFO, logger="realtime-voice"):
            session_logger("s42").info("turn started")

        record = caplog.records[-1]
        assert record.session_id == "s42"
        assert record.getMessage() == "[session=s42] turn started"
