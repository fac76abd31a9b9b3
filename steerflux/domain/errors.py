"""Exception hierarchy shared by the session client and the API services."""

from __future__ import annotations

from typing import Any, Optional


class SteerfluxError(Exception):
    """Base exception for SteerFlux client failures."""


class SessionError(SteerfluxError):
    """Raised when an outbound API call cannot produce a usable response."""


class NetworkError(SessionError):
    """The request never reached the server or no response was received."""


class RequestTimeoutError(SessionError, TimeoutError):
    """The fixed request deadline elapsed before a response arrived."""


class HttpError(SessionError):
    """The server answered with a non-success status code."""

    def __init__(self, msg: str, response: Any = None):
        super().__init__(msg)
        self.response = response
        self.status_code: Optional[int] = None if response is None else response.status_code
        self.message = _extract_message(response)


class AuthExpiredError(HttpError):
    """A 401 the session could not recover from."""


class RefreshFailedError(SessionError):
    """The refresh token could not be exchanged for a new credential pair."""


def _extract_message(response: Any) -> Optional[str]:
    """Pull a human readable error out of a JSON error envelope, if there is one."""
    if response is None:
        return None
    try:
        payload = response.json()
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    for key in ("message", "error"):
        value = payload.get(key)
        if isinstance(value, str) and value:
            return value
    return None


__all__ = [
    "SteerfluxError",
    "SessionError",
    "NetworkError",
    "RequestTimeoutError",
    "HttpError",
    "AuthExpiredError",
    "RefreshFailedError",
]
