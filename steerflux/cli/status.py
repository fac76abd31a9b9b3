"""Health check command support for the steerflux CLI."""

from __future__ import annotations

from dataclasses import dataclass
from time import perf_counter
from typing import Callable, Iterable, List, Sequence

from steerflux.domain.credentials import CredentialStore
from steerflux.domain.errors import AuthExpiredError
from steerflux.infrastructure.credential_store import InMemoryCredentialStore
from steerflux.infrastructure.session_client import SessionClient

DEFAULT_TIMEOUT_SECONDS = 3.0


@dataclass
class CheckResult:
    """Represents a single dependency check outcome."""

    name: str
    ok: bool
    detail: str


def _format_duration(start: float) -> str:
    elapsed = perf_counter() - start
    if elapsed < 0.001:
        return "<1ms"
    return f"{int(elapsed * 1000)}ms"


def _format_exception(exc: Exception) -> str:
    message = str(exc).strip()
    if not message:
        message = exc.__class__.__name__
    return message.splitlines()[0]


def check_api(client: SessionClient) -> CheckResult:
    """Hit the public category listing; any non-5xx answer means the API is up.

    The request goes out without the stored token, so an expired session is
    left for :func:`check_credentials` to report instead of being refreshed
    or cleared here.
    """
    anonymous = SessionClient(
        base_url=client.base_url,
        timeout=client.timeout,
        credential_store=InMemoryCredentialStore(),
    )
    start = perf_counter()
    try:
        response = anonymous.get("/categories", params={"limit": 1})
    except AuthExpiredError as exc:
        return CheckResult(name="API", ok=True, detail=f"HTTP {exc.status_code}")
    except Exception as exc:  # pragma: no cover - handled via result
        return CheckResult(name="API", ok=False, detail=_format_exception(exc))
    if response.status_code >= 500:
        return CheckResult(name="API", ok=False, detail=f"HTTP {response.status_code}")
    return CheckResult(name="API", ok=True, detail=_format_duration(start))


def check_credentials(store: CredentialStore) -> CheckResult:
    """Report whether a complete credential pair is stored (no network call)."""
    if store.get() is not None:
        profile = store.admin_profile() or {}
        who = profile.get("email") or profile.get("name") or "admin"
        return CheckResult(name="Session", ok=True, detail=f"signed in as {who}")
    if store.access_token() and not store.refresh_token():
        return CheckResult(name="Session", ok=False, detail="refresh token missing; run `steerflux login`")
    return CheckResult(name="Session", ok=False, detail="not signed in")


def run_status_checks(
    client: SessionClient,
    *,
    checks: Sequence[Callable[[], CheckResult]] | None = None,
) -> List[CheckResult]:
    """Executes dependency checks, allowing override for testing."""

    if checks is None:
        checks = (
            lambda: check_api(client),
            lambda: check_credentials(client.credentials),
        )

    return [check() for check in checks]


def render_results(results: Iterable[CheckResult]) -> str:
    lines = []
    for result in results:
        status = "OK" if result.ok else "FAIL"
        lines.append(f"{result.name:<8} {status:<4} {result.detail}")
    return "\n".join(lines)
