"""Entry point: logging setup, then the Typer app."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from pydantic import ValidationError

from .cli import app
from .config import Settings, get_settings

LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUP_COUNT = 3
_QUIET_LOGGERS = ("httpx", "httpcore", "openai", "google_genai")


def _load_settings() -> Settings:
    """Settings from the environment, or the built-in defaults if they don't validate."""
    try:
        return get_settings()
    except ValidationError as e:
        print(f"Warning: ignoring invalid FLOWGATE_* settings: {e}", file=sys.stderr)
        return Settings.model_construct()


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Send everything at the configured level to the rotating log file.

    stderr only gets WARNING and up so command output stays readable.
    """
    settings = settings or _load_settings()
    settings.log_file.parent.mkdir(parents=True, exist_ok=True)

    file_handler = RotatingFileHandler(
        settings.log_file,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUP_COUNT,
        encoding="utf-8",
    )
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    console_handler.setLevel(logging.WARNING)

    root_logger = logging.getLogger()
    root_logger.setLevel(settings.log_level)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def main() -> None:
    setup_logging()
    app()


if __name__ == "__main__":
    main()
