"""
Session-aware HTTP client for the SteerFlux REST API.

Every call carries the stored bearer token. A 401 triggers a single refresh of
the credential pair followed by one replay of the original request; when the
refresh is impossible the stored credentials are dropped and the injected
session-expired callback is invoked.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional

import requests

from steerflux.config import settings
from steerflux.domain.credentials import CredentialPair, CredentialStore
from steerflux.domain.errors import (
    AuthExpiredError,
    NetworkError,
    RefreshFailedError,
    RequestTimeoutError,
)
from steerflux.infrastructure import log_utils
from steerflux.infrastructure.credential_store import JsonFileCredentialStore

UNAUTHORIZED_STATUS = 401

SessionExpiredCallback = Callable[[], None]


@dataclass
class RequestDescriptor:
    """Everything needed to send (and later replay) one API call."""

    method: str
    path: str
    # A callable is evaluated on every send, so a replay can pick up rotated state.
    json: Any = None
    params: Optional[Mapping[str, Any]] = None
    data: Any = None
    files: Any = None
    headers: Dict[str, str] = field(default_factory=dict)
    retried: bool = False


class SessionClient:
    """A client for authenticated calls against the storefront API."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        credential_store: Optional[CredentialStore] = None,
        on_session_expired: Optional[SessionExpiredCallback] = None,
        refresh_path: str | None = None,
    ):
        self.base_url = (base_url or settings.STEERFLUX_API_URL).rstrip("/")
        self.timeout = timeout or settings.STEERFLUX_REQUEST_TIMEOUT
        self.refresh_path = refresh_path or settings.STEERFLUX_REFRESH_PATH
        self.credentials: CredentialStore = credential_store or JsonFileCredentialStore(
            settings.STEERFLUX_TOKEN_FILE
        )
        self.on_session_expired = on_session_expired
        self.debug_api = bool(getattr(settings, "DEBUG_API", False))

        # Serialises refresh cycles so concurrent 401s share one rotation.
        self._refresh_lock = threading.Lock()

    # --- Public API ---
    def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        *,
        params: Optional[Mapping[str, Any]] = None,
        data: Any = None,
        files: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> requests.Response:
        """Send ``method path`` and return the response for any non-401 status.

        Raises :class:`AuthExpiredError` when a 401 survives the refresh and
        replay, :class:`RequestTimeoutError` when the deadline elapses and
        :class:`NetworkError` when no response is received.
        """
        descriptor = RequestDescriptor(
            method=method.upper(),
            path=path,
            json=body,
            params=params,
            data=data,
            files=files,
            headers=dict(headers or {}),
        )
        return self._execute(descriptor)

    def get(self, path: str, **kwargs: Any) -> requests.Response:
        return self.request("GET", path, **kwargs)

    def post(self, path: str, body: Any = None, **kwargs: Any) -> requests.Response:
        return self.request("POST", path, body, **kwargs)

    def put(self, path: str, body: Any = None, **kwargs: Any) -> requests.Response:
        return self.request("PUT", path, body, **kwargs)

    def patch(self, path: str, body: Any = None, **kwargs: Any) -> requests.Response:
        return self.request("PATCH", path, body, **kwargs)

    def delete(self, path: str, body: Any = None, **kwargs: Any) -> requests.Response:
        return self.request("DELETE", path, body, **kwargs)

    # --- Internals ---
    def _url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path

        normalized = path if path.startswith("/") else f"/{path}"
        return f"{self.base_url}{normalized}"

    def _execute(self, descriptor: RequestDescriptor) -> requests.Response:
        sent_token = self.credentials.access_token()
        response = self._send(descriptor, sent_token)

        if response.status_code != UNAUTHORIZED_STATUS:
            return response

        if descriptor.retried:
            log_utils.warn(f"{descriptor.method} {descriptor.path} rejected again after refresh.")
            raise AuthExpiredError(f"{descriptor.method} {descriptor.path} failed with 401", response)

        # Mark before refreshing so the replay can never loop.
        descriptor.retried = True

        try:
            self._refresh(stale_token=sent_token)
        except RefreshFailedError as exc:
            log_utils.warn(f"Session refresh failed: {exc}")
            self._expire_session()
            raise AuthExpiredError(
                f"{descriptor.method} {descriptor.path} failed with 401", response
            ) from None

        log_utils.info(f"Replaying {descriptor.method} {descriptor.path} with refreshed credentials.")
        return self._execute(descriptor)

    def _send(self, descriptor: RequestDescriptor, access_token: Optional[str]) -> requests.Response:
        url = self._url(descriptor.path)
        headers: Dict[str, str] = {"Accept": "application/json"}
        headers.update(descriptor.headers)
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"

        if self.debug_api:
            log_utils.debug(f"[steerflux.api] {descriptor.method} {url} params={descriptor.params}")

        try:
            response = requests.request(
                method=descriptor.method,
                url=url,
                headers=headers,
                params=descriptor.params,
                json=descriptor.json() if callable(descriptor.json) else descriptor.json,
                data=descriptor.data,
                files=descriptor.files,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as exc:
            raise RequestTimeoutError(
                f"{descriptor.method} {descriptor.path} timed out after {self.timeout}s"
            ) from exc
        except requests.exceptions.RequestException as exc:
            raise NetworkError(f"{descriptor.method} {descriptor.path} failed: {exc!r}") from exc

        if self.debug_api:
            log_utils.debug(f"[steerflux.api] <- {response.status_code} {descriptor.method} {url}")

        return response

    def _refresh(self, *, stale_token: Optional[str]) -> CredentialPair:
        """Exchange the stored refresh token for a new pair and persist it.

        ``stale_token`` is the access token the failing request was sent with.
        If another caller has already rotated it while we waited for the lock,
        the rotated pair is reused instead of refreshing a second time. A
        failed refresh clears the store before the lock is released, so
        callers queued behind it fail without another network call.
        """
        with self._refresh_lock:
            current = self.credentials.get()
            if current is not None and current.access_token != stale_token:
                log_utils.debug("Credentials already rotated by a concurrent request.")
                return current

            try:
                pair = self._exchange_refresh_token()
            except RefreshFailedError:
                self.credentials.clear()
                raise

            self.credentials.set(pair)
            log_utils.info("Session credentials refreshed.")
            return pair

    def _exchange_refresh_token(self) -> CredentialPair:
        refresh_token = self.credentials.refresh_token()
        if not refresh_token:
            raise RefreshFailedError("No refresh token stored.")

        log_utils.info("Refreshing session credentials.")
        try:
            response = requests.post(
                self._url(self.refresh_path),
                json={"refreshToken": refresh_token},
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as exc:
            raise RefreshFailedError(f"Refresh request failed: {exc!r}") from exc

        if not 200 <= response.status_code < 300:
            raise RefreshFailedError(f"Refresh rejected with {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise RefreshFailedError("Refresh response was not valid JSON") from exc

        data = payload.get("data") if isinstance(payload, dict) else None
        pair = CredentialPair.from_payload(data)
        if pair is None:
            raise RefreshFailedError("Refresh returned incomplete credentials")
        return pair

    def _expire_session(self) -> None:
        if self.on_session_expired is None:
            return
        try:
            self.on_session_expired()
        except Exception as exc:
            log_utils.error(f"Session-expired callback failed: {exc}", exc_info=True)


__all__ = ["RequestDescriptor", "SessionClient", "SessionExpiredCallback", "UNAUTHORIZED_STATUS"]
