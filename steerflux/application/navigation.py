"""Forced-login fallback used when a session cannot be recovered."""

from __future__ import annotations

from typing import Callable, List, Optional

from steerflux.config import settings
from steerflux.infrastructure import log_utils


class Navigator:
    """Tracks the current location of the hosting app and records navigations."""

    def __init__(self, current_path: str = "/", *, on_navigate: Optional[Callable[[str], None]] = None):
        self.current_path = current_path
        self.history: List[str] = []
        self._on_navigate = on_navigate

    def navigate(self, path: str) -> None:
        self.history.append(path)
        self.current_path = path
        if self._on_navigate is not None:
            self._on_navigate(path)


class RedirectFallback:
    """Session-expired callback that sends the user to the admin login page.

    Nothing happens when the navigator is already on the login page, so a
    login screen that makes a failing authenticated call cannot bounce
    between "unauthenticated" and "redirect to login" forever.
    """

    def __init__(self, navigator: Navigator, *, login_path: str | None = None):
        self.navigator = navigator
        self.login_path = login_path or settings.STEERFLUX_LOGIN_PATH

    def __call__(self) -> None:
        current = self.navigator.current_path or ""
        if current.startswith(self.login_path):
            log_utils.info("Session expired while on the login page; not redirecting.")
            return
        log_utils.warn(f"Session expired; redirecting from {current} to {self.login_path}.")
        self.navigator.navigate(self.login_path)


__all__ = ["Navigator", "RedirectFallback"]
