"""
Centralised config for the SteerFlux client.

This module loads the API endpoint, session and logging settings from
environment variables (or an optional ``.env`` file) and exposes typed,
validated access to them through a singleton `settings` object.
"""

import os
from pathlib import Path
from typing import Any, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

CONFIG_FILE = Path(__file__).resolve()


def _discover_project_root(config_file: Path) -> tuple[Path, Path]:
    """Return a project root and env file path without assuming ``.env`` exists.

    Walk the parents looking for a ``.env`` file and fall back to the
    repository root (detected via common project markers) when it is missing.
    """

    parents = list(config_file.parents)

    for parent in parents:
        env_file = parent / ".env"
        if env_file.exists():
            return parent, env_file

    for marker in ("pyproject.toml", ".git"):
        for parent in parents:
            if (parent / marker).exists():
                return parent, parent / ".env"

    fallback_root = parents[1] if len(parents) > 1 else parents[0]
    return fallback_root, fallback_root / ".env"


PROJECT_ROOT, ENV_FILE_PATH = _discover_project_root(CONFIG_FILE)

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "steerflux"


class Settings(BaseSettings):
    """
    Centralised and validated client settings.
    """
    model_config = SettingsConfigDict(
        env_file=ENV_FILE_PATH, env_file_encoding="utf-8", extra="ignore", case_sensitive=False
    )

    # --- API ENDPOINT ---
    STEERFLUX_API_URL: str = "http://localhost:5000/api"
    STEERFLUX_REQUEST_TIMEOUT: float = Field(10.0, gt=0)
    STEERFLUX_REFRESH_PATH: str = "/auth/refresh"
    STEERFLUX_LOGIN_PATH: str = "/admin/login"

    # --- CREDENTIALS ---
    STEERFLUX_TOKEN_FILE: Path = DEFAULT_CONFIG_DIR / "credentials.json"
    STEERFLUX_ADMIN_EMAIL: Optional[str] = None
    STEERFLUX_ADMIN_PASSWORD: Optional[SecretStr] = None

    # --- LOGGING ---
    STEERFLUX_LOG_LEVEL: str = "INFO"
    STEERFLUX_LOG_TO_CONSOLE: bool = True
    STEERFLUX_LOG_FILE: Optional[Path] = None
    DEBUG_API: bool = False

    @field_validator("STEERFLUX_API_URL")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        trimmed = value.strip().rstrip("/")
        if not trimmed.startswith(("http://", "https://")):
            raise ValueError("STEERFLUX_API_URL must include scheme and host.")
        return trimmed

    @field_validator("STEERFLUX_REFRESH_PATH", "STEERFLUX_LOGIN_PATH")
    @classmethod
    def _leading_slash(cls, value: str) -> str:
        value = value.strip()
        return value if value.startswith("/") else f"/{value}"

    # --- DYNAMIC FILE PATHS ---
    @property
    def log_path(self) -> Path:
        """
        Path for the client history log.

        An explicit ``STEERFLUX_LOG_FILE`` wins, otherwise the log lives next
        to the stored credentials.
        """
        if self.STEERFLUX_LOG_FILE is not None:
            return Path(self.STEERFLUX_LOG_FILE)
        return Path(self.STEERFLUX_TOKEN_FILE).parent / "steerflux_history.log"


settings = Settings()


def _from_environ(raw: str, current: Any) -> Any:
    """Coerce an environment string to the type of the setting it overrides."""
    if isinstance(current, bool):
        return raw.strip().lower() in {"1", "true", "yes", "on"}
    if isinstance(current, float):
        try:
            return float(raw)
        except ValueError:
            return current
    return raw


def get_env(name: str, default: Any = None) -> Any:
    """Resolve ``name`` from the live environment, then ``settings``, then ``default``.

    ``settings`` is read once at import; this lets logging pick up
    ``STEERFLUX_LOG_LEVEL``/``STEERFLUX_LOG_TO_CONSOLE`` changes made later
    in the process.
    """
    current = getattr(settings, name, None)
    raw = os.environ.get(name)
    if raw is None:
        return default if current is None else current
    return _from_environ(raw, current)
