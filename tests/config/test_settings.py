from pathlib import Path

import pytest
from pydantic import ValidationError

from steerflux.config import config as config_module
from steerflux.config.config import Settings, get_env


def test_api_url_trailing_slash_is_stripped() -> None:
    settings = Settings(STEERFLUX_API_URL="https://shop.example.com/api/")

    assert settings.STEERFLUX_API_URL == "https://shop.example.com/api"


def test_api_url_requires_scheme() -> None:
    with pytest.raises(ValidationError):
        Settings(STEERFLUX_API_URL="shop.example.com/api")


def test_paths_gain_leading_slash() -> None:
    settings = Settings(STEERFLUX_LOGIN_PATH="admin/login", STEERFLUX_REFRESH_PATH="auth/refresh")

    assert settings.STEERFLUX_LOGIN_PATH == "/admin/login"
    assert settings.STEERFLUX_REFRESH_PATH == "/auth/refresh"


def test_timeout_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        Settings(STEERFLUX_REQUEST_TIMEOUT=0)


def test_default_timeout_is_ten_seconds(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("STEERFLUX_REQUEST_TIMEOUT", raising=False)

    assert Settings().STEERFLUX_REQUEST_TIMEOUT == 10.0


def test_log_path_defaults_next_to_token_file(tmp_path: Path) -> None:
    settings = Settings(STEERFLUX_TOKEN_FILE=tmp_path / "creds.json", STEERFLUX_LOG_FILE=None)

    assert settings.log_path == tmp_path / "steerflux_history.log"


def test_get_env_prefers_environment_and_coerces(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("STEERFLUX_REQUEST_TIMEOUT", "2.5")

    assert get_env("STEERFLUX_REQUEST_TIMEOUT") == 2.5


def test_get_env_falls_back_to_settings_then_default(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("STEERFLUX_LOGIN_PATH", raising=False)
    monkeypatch.delenv("SOMETHING_UNKNOWN", raising=False)

    assert get_env("STEERFLUX_LOGIN_PATH") == config_module.settings.STEERFLUX_LOGIN_PATH
    assert get_env("SOMETHING_UNKNOWN", default="x") == "x"
