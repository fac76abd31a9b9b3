"""Admin authentication against the storefront API."""

from __future__ import annotations

from typing import Any, Dict, Mapping

from steerflux.application.api_services import Envelope, EnvelopeServiceMixin
from steerflux.domain.credentials import CredentialPair
from steerflux.domain.errors import HttpError, SessionError
from steerflux.infrastructure import log_utils
from steerflux.infrastructure.session_client import SessionClient


class AuthService(EnvelopeServiceMixin):
    """Login, logout and profile calls; keeps the credential store in step."""

    def __init__(self, client: SessionClient):
        self._client = client

    @property
    def _credentials(self):
        return self._client.credentials

    def register(self, payload: Mapping[str, Any]) -> Envelope:
        return self._unwrap(self._client.post("/auth/register", dict(payload)), "Register")

    def login(self, email: str, password: str) -> Envelope:
        """Log in and persist the returned credential pair and admin profile."""
        envelope = self._unwrap(
            self._client.post("/auth/login", {"email": email, "password": password}),
            "Login",
        )
        data = envelope.get("data")
        pair = CredentialPair.from_payload(data)
        if pair is None:
            raise HttpError("Login response did not include a credential pair")

        self._credentials.set(pair)
        admin = data.get("admin") or data.get("user")
        self._credentials.set_admin_profile(admin if isinstance(admin, dict) else None)
        log_utils.info(f"Logged in as {email}.")
        return envelope

    def refresh_token(self, refresh_token: str) -> Envelope:
        return self._unwrap(self._client.post("/auth/refresh", {"refreshToken": refresh_token}), "Refresh token")

    def logout(self) -> Envelope:
        """Revoke the stored refresh token server-side and always drop local credentials.

        The body is built at send time: if the access token has expired, the
        replay after the refresh revokes the newly rotated refresh token.
        """

        def body() -> Dict[str, Any]:
            return {"refreshToken": self._credentials.refresh_token()}

        try:
            envelope = self._unwrap(self._client.post("/auth/logout", body), "Logout")
        except SessionError as exc:
            log_utils.warn(f"Server-side logout failed: {exc}")
            envelope = {"success": False, "error": str(exc)}
        finally:
            self._credentials.clear()
        log_utils.info("Local credentials cleared.")
        return envelope

    def logout_all(self) -> Envelope:
        try:
            return self._unwrap(self._client.post("/auth/logout-all"), "Logout all devices")
        finally:
            self._credentials.clear()

    def get_profile(self) -> Envelope:
        envelope = self._unwrap(self._client.get("/auth/profile"), "Get profile")
        profile = envelope.get("data")
        if isinstance(profile, dict):
            self._credentials.set_admin_profile(profile.get("admin") or profile)
        return envelope

    def change_password(self, current_password: str, new_password: str) -> Envelope:
        body: Dict[str, str] = {"currentPassword": current_password, "newPassword": new_password}
        return self._unwrap(self._client.put("/auth/change-password", body), "Change password")


__all__ = ["AuthService"]
