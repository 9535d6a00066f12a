"""
Station configuration.

Values come from the environment (a .env file in the working directory is
loaded first) and can be overridden by CLI options.
"""

import os
from dataclasses import dataclass, field, replace
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

from shared.constants import (
    DEFAULT_DATA_DIR,
    DEFAULT_HOST,
    DEFAULT_MAX_UPLOAD_MB,
    DEFAULT_MUSIC_DIR,
    DEFAULT_PORT,
    DEFAULT_SESSION_MAX_AGE,
)

APP_NAME = "demohub"
VERSION = "1.0.0"

_TRUE_VALUES = ("1", "true", "yes", "on")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUE_VALUES


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


@dataclass
class StationConfig:
    """Runtime settings for one station process."""

    music_dir: Path = field(default_factory=lambda: Path(DEFAULT_MUSIC_DIR))
    data_dir: Path = field(default_factory=lambda: Path(DEFAULT_DATA_DIR))
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    trust_proxy: bool = False
    session_max_age: int = DEFAULT_SESSION_MAX_AGE
    max_upload_mb: int = DEFAULT_MAX_UPLOAD_MB
    watch: bool = True

    def __post_init__(self) -> None:
        self.music_dir = Path(self.music_dir).expanduser().absolute()
        self.data_dir = Path(self.data_dir).expanduser().absolute()
        self.port = max(1, min(65535, int(self.port)))
        self.session_max_age = max(0, int(self.session_max_age))
        self.max_upload_mb = max(1, int(self.max_upload_mb))

    def with_overrides(self, **overrides) -> "StationConfig":
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes)


def load_config(dotenv: bool = True) -> StationConfig:
    """Build a StationConfig from environment variables."""
    if dotenv:
        load_dotenv(find_dotenv(usecwd=True))
    return StationConfig(
        music_dir=Path(os.getenv("MUSIC_DIR") or DEFAULT_MUSIC_DIR),
        data_dir=Path(os.getenv("DEMOHUB_DATA_DIR") or DEFAULT_DATA_DIR),
        host=os.getenv("HOST") or DEFAULT_HOST,
        port=_env_int("PORT", DEFAULT_PORT),
        trust_proxy=_env_bool("TRUST_PROXY", False),
        session_max_age=_env_int("SESSION_MAX_AGE", DEFAULT_SESSION_MAX_AGE),
        max_upload_mb=_env_int("MAX_UPLOAD_MB", DEFAULT_MAX_UPLOAD_MB),
        watch=_env_bool("DEMOHUB_WATCH", True),
    )
