"""Infrastructure implementations of credential persistence."""

from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import Any, Dict, Optional

from steerflux.domain.credentials import (
    ACCESS_TOKEN_KEY,
    ADMIN_PROFILE_KEY,
    REFRESH_TOKEN_KEY,
    CredentialPair,
    CredentialStore,
)
from steerflux.infrastructure.log_utils import log_message


class _MappingCredentialStore(CredentialStore):
    """Shared logic for stores that keep the fixed keys in a flat mapping."""

    def __init__(self) -> None:
        self._lock = threading.RLock()

    def _read(self) -> Dict[str, Any]:
        raise NotImplementedError

    def _write(self, data: Dict[str, Any]) -> None:
        raise NotImplementedError

    def _value(self, key: str) -> Optional[str]:
        value = self._read().get(key)
        if isinstance(value, str) and value:
            return value
        return None

    def access_token(self) -> Optional[str]:
        return self._value(ACCESS_TOKEN_KEY)

    def refresh_token(self) -> Optional[str]:
        return self._value(REFRESH_TOKEN_KEY)

    def get(self) -> Optional[CredentialPair]:
        return CredentialPair.from_payload(self._read())

    def set(self, pair: CredentialPair) -> None:
        with self._lock:
            data = self._read()
            data.update(pair.to_payload())
            self._write(data)

    def clear(self) -> None:
        with self._lock:
            data = self._read()
            for key in (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, ADMIN_PROFILE_KEY):
                data.pop(key, None)
            self._write(data)

    def admin_profile(self) -> Optional[Dict[str, Any]]:
        profile = self._read().get(ADMIN_PROFILE_KEY)
        return profile if isinstance(profile, dict) else None

    def set_admin_profile(self, profile: Optional[Dict[str, Any]]) -> None:
        with self._lock:
            data = self._read()
            if profile is None:
                data.pop(ADMIN_PROFILE_KEY, None)
            else:
                data[ADMIN_PROFILE_KEY] = dict(profile)
            self._write(data)


class InMemoryCredentialStore(_MappingCredentialStore):
    """Keep credentials for the lifetime of the process only."""

    def __init__(self, pair: Optional[CredentialPair] = None) -> None:
        super().__init__()
        self._data: Dict[str, Any] = pair.to_payload() if pair else {}

    def _read(self) -> Dict[str, Any]:
        return dict(self._data)

    def _write(self, data: Dict[str, Any]) -> None:
        self._data = dict(data)


class JsonFileCredentialStore(_MappingCredentialStore):
    """Persist credentials to a JSON file on disk."""

    def __init__(self, path: Path | str) -> None:
        super().__init__()
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, ValueError) as exc:
            log_message(f"Failed to read credentials from {self._path}: {exc}", "WARN")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2)

        try:
            os.chmod(self._path, 0o600)
        except OSError as exc:  # pragma: no cover - depends on platform
            log_message(f"Could not set permissions on {self._path}: {exc}", "WARN")


__all__ = ["InMemoryCredentialStore", "JsonFileCredentialStore"]
