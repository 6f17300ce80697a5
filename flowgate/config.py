"""Environment and settings (Pydantic Settings)."""

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

# Default data directory: ~/.flowgate/data/
_data_dir = Path.home() / ".flowgate" / "data"


class Settings(BaseSettings):
    """flowgate settings loaded from environment and .env.

    LLM provider settings for the verifier live in ~/.flowgate/config.toml and
    are read by flowgate.utils.llm.
    """

    model_config = SettingsConfigDict(
        env_prefix="FLOWGATE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    db_path: Path = _data_dir / "flowgate.db"
    ranking_config_path: Path = Path.home() / ".flowgate" / "now-ranking.json"

    # Semantic verifier. When disabled (or no provider is configured) the
    # conservative offline verdicts apply.
    verifier_enabled: bool = True
    verifier_timeout: float = 20.0

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_file: Path = _data_dir / "flowgate.log"


def get_settings() -> Settings:
    """Return application settings (singleton-like)."""
    return Settings()
