"""Cached loader for the Now-list ranking configuration."""

import json
import logging
import threading
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from flowgate.models import RankingConfig

logger = logging.getLogger(__name__)


class ConfigStore:
    """Loads RankingConfig from a JSON file once and caches it.

    A missing, unreadable or invalid file falls back to the built-in
    defaults; `get()` never raises. Keys absent from the file keep their
    defaults field by field.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = Path(path) if path else None
        self._cached: Optional[RankingConfig] = None
        self._lock = threading.Lock()

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def get(self) -> RankingConfig:
        if self._cached is None:
            with self._lock:
                if self._cached is None:
                    self._cached = self._load()
        return self._cached

    def invalidate(self) -> None:
        """Drop the cache; the next get() re-reads the file."""
        with self._lock:
            self._cached = None

    def _load(self) -> RankingConfig:
        if self._path is None or not self._path.exists():
            return RankingConfig()
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            if not isinstance(raw, dict):
                raise ValueError("top-level JSON value must be an object")
            config = RankingConfig.model_validate(raw)
        except (OSError, ValueError, RecursionError, ValidationError) as e:
            # JSONDecodeError is a ValueError; very deep nesting raises RecursionError
            logger.warning(
                "Using default ranking config; could not load %s: %s", self._path, e
            )
            return RankingConfig()
        logger.debug("Loaded ranking config from %s", self._path)
        return config
