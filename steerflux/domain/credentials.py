"""Domain-level credential pair and the protocol for persisting it."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol

ACCESS_TOKEN_KEY = "accessToken"
REFRESH_TOKEN_KEY = "refreshToken"
ADMIN_PROFILE_KEY = "admin"


@dataclass(frozen=True)
class CredentialPair:
    """An access token and the refresh token that can renew it."""

    access_token: str
    refresh_token: str

    def __post_init__(self) -> None:
        if not self.access_token or not self.refresh_token:
            raise ValueError("A credential pair needs both an access and a refresh token.")

    def __repr__(self) -> str:
        return "CredentialPair(access_token='***', refresh_token='***')"

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["CredentialPair"]:
        """Build a pair from an ``{accessToken, refreshToken}`` mapping, or ``None``."""
        if not isinstance(payload, dict):
            return None
        access = payload.get(ACCESS_TOKEN_KEY)
        refresh = payload.get(REFRESH_TOKEN_KEY)
        if not isinstance(access, str) or not isinstance(refresh, str) or not access or not refresh:
            return None
        return cls(access_token=access, refresh_token=refresh)

    def to_payload(self) -> Dict[str, str]:
        return {ACCESS_TOKEN_KEY: self.access_token, REFRESH_TOKEN_KEY: self.refresh_token}


class CredentialStore(Protocol):
    """Abstraction for the persisted credential pair and admin profile.

    Readers must tolerate partially written state: a missing refresh token is
    reported as ``None`` rather than raising.
    """

    def access_token(self) -> Optional[str]:
        """Return the stored access token, if any."""

    def refresh_token(self) -> Optional[str]:
        """Return the stored refresh token, if any."""

    def get(self) -> Optional[CredentialPair]:
        """Return the full pair, or ``None`` unless both tokens are present."""

    def set(self, pair: CredentialPair) -> None:
        """Persist both tokens of ``pair``."""

    def clear(self) -> None:
        """Remove both tokens and the admin profile."""

    def admin_profile(self) -> Optional[Dict[str, Any]]:
        """Return the cached admin profile blob, if any."""

    def set_admin_profile(self, profile: Optional[Dict[str, Any]]) -> None:
        """Cache (or drop, when ``None``) the admin profile blob."""


__all__ = [
    "ACCESS_TOKEN_KEY",
    "REFRESH_TOKEN_KEY",
    "ADMIN_PROFILE_KEY",
    "CredentialPair",
    "CredentialStore",
]
