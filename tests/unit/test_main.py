"""Unit tests for the entry point's settings loading and logging setup."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest

from flowgate.config import Settings
from flowgate.main import _load_settings, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


def test_invalid_settings_fall_back_to_defaults(
    monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    monkeypatch.setenv("FLOWGATE_LOG_LEVEL", "LOUD")

    settings = _load_settings()

    assert settings.log_level == "INFO"
    assert settings.log_file == Settings.model_fields["log_file"].default
    assert "invalid FLOWGATE_* settings" in capsys.readouterr().err


def test_setup_logging_writes_to_configured_file(tmp_path: Path, restore_root_logger) -> None:
    log_file = tmp_path / "logs" / "flowgate.log"

    setup_logging(Settings(log_file=log_file, log_level="DEBUG"))

    (file_handler,) = [
        h for h in restore_root_logger.handlers if isinstance(h, RotatingFileHandler)
    ]
    assert Path(file_handler.baseFilename) == log_file
    assert restore_root_logger.level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING

    logging.getLogger("flowgate.test").debug("written")
    file_handler.flush()
    assert "written" in log_file.read_text(encoding="utf-8")
