# (Functional) **Command-line interface** (Typer app) for SteerFlux admins.

"""
Command-line interface for the SteerFlux storefront API.

Provides admin login/logout plus read-only views of the catalog, the contact
inbox, review moderation queue and dashboard figures.
"""
from typing import Any, Dict, List, Optional, Sequence

import typer
from rich.console import Console
from rich.table import Table
from typer import Option
from typing_extensions import Annotated

from steerflux.application.api_services import (
    CategoryService,
    DashboardService,
    MessageService,
    ProductService,
    ReviewService,
)
from steerflux.application.auth_service import AuthService
from steerflux.application.navigation import Navigator, RedirectFallback
from steerflux.cli.status import DEFAULT_TIMEOUT_SECONDS, render_results, run_status_checks
from steerflux.config import settings
from steerflux.domain.errors import AuthExpiredError, HttpError, SessionError
from steerflux.infrastructure import log_utils
from steerflux.infrastructure.session_client import SessionClient

console = Console()

app = typer.Typer(
    name="steerflux",
    help="CLI for the SteerFlux storefront and admin dashboard API.",
    add_completion=False,
)


def _announce_login_required(path: str) -> None:
    console.print(f"[yellow]Session expired. Run `steerflux login` to sign in again ({path}).[/yellow]")


def _build_client(current_path: str = "/admin", *, timeout: float | None = None) -> SessionClient:
    """Wire a session client whose expiry fallback prints a login notice."""
    navigator = Navigator(current_path, on_navigate=_announce_login_required)
    return SessionClient(timeout=timeout, on_session_expired=RedirectFallback(navigator))


def _fail(exc: Exception) -> None:
    if isinstance(exc, AuthExpiredError):
        console.print("[red]Not authorised. Sign in with `steerflux login`.[/red]")
    elif isinstance(exc, HttpError):
        console.print(f"[red]{exc.message or exc}[/red]")
    else:
        console.print(f"[red]{exc}[/red]")
    raise typer.Exit(code=1)


def _items(envelope: Dict[str, Any], key: str) -> List[Dict[str, Any]]:
    """Pull a list of records out of ``data`` whether it is a list or a keyed page."""
    data = envelope.get("data")
    if isinstance(data, list):
        return [item for item in data if isinstance(item, dict)]
    if isinstance(data, dict) and isinstance(data.get(key), list):
        return [item for item in data[key] if isinstance(item, dict)]
    return []


def _render_table(rows: Sequence[Dict[str, Any]], columns: Sequence[str]) -> None:
    if not rows:
        console.print("[yellow]No results.[/yellow]")
        return
    table = Table(show_header=True, header_style="bold cyan")
    for col in columns:
        table.add_column(col)
    for row in rows:
        table.add_row(*[_cell(row.get(col)) for col in columns])
    console.print(table)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, dict):
        return str(value.get("name") or value.get("_id") or "")
    return str(value)


@app.command()
def login(
    email: Annotated[Optional[str], Option(help="Admin email. Defaults to STEERFLUX_ADMIN_EMAIL.")] = None,
    password: Annotated[Optional[str], Option(help="Admin password. Prompted when omitted.")] = None,
) -> None:
    """Sign in as an admin and store the session credentials locally."""
    email = email or settings.STEERFLUX_ADMIN_EMAIL or typer.prompt("Email")
    if password is None and settings.STEERFLUX_ADMIN_PASSWORD is not None:
        password = settings.STEERFLUX_ADMIN_PASSWORD.get_secret_value()
    password = password or typer.prompt("Password", hide_input=True)

    client = _build_client(settings.STEERFLUX_LOGIN_PATH)
    try:
        AuthService(client).login(email, password)
    except SessionError as exc:
        log_utils.warn(f"Login failed for {email}: {exc}")
        _fail(exc)
    console.print(f"[green]Signed in as {email}.[/green]")


@app.command()
def logout() -> None:
    """Revoke the stored refresh token and forget local credentials."""
    envelope = AuthService(_build_client()).logout()
    if envelope.get("success") is False:
        console.print("[yellow]Server did not confirm logout; local credentials removed anyway.[/yellow]")
    else:
        console.print("[green]Signed out.[/green]")


@app.command()
def profile() -> None:
    """Show the signed-in admin profile."""
    try:
        envelope = AuthService(_build_client()).get_profile()
    except SessionError as exc:
        _fail(exc)
    data = envelope.get("data") or {}
    admin = data.get("admin", data) if isinstance(data, dict) else {}
    _render_table([admin], ["name", "email", "role", "lastLogin"])


@app.command()
def products(
    search: Annotated[Optional[str], Option(help="Free-text search.")] = None,
    category: Annotated[Optional[str], Option(help="Category id filter.")] = None,
    page: Annotated[int, Option(help="Page number.")] = 1,
    limit: Annotated[int, Option(help="Page size.")] = 20,
) -> None:
    """List catalog products."""
    params: Dict[str, Any] = {"page": page, "limit": limit}
    if search:
        params["search"] = search
    if category:
        params["category"] = category
    try:
        envelope = ProductService(_build_client()).get_all(params)
    except SessionError as exc:
        _fail(exc)
    _render_table(_items(envelope, "products"), ["_id", "name", "model", "price", "category", "stockCount"])


@app.command()
def categories() -> None:
    """List product categories."""
    try:
        envelope = CategoryService(_build_client()).get_all()
    except SessionError as exc:
        _fail(exc)
    _render_table(_items(envelope, "categories"), ["_id", "name", "productCount"])


@app.command()
def messages(
    status: Annotated[Optional[str], Option(help="Filter by status (new, read, replied).")] = None,
    archived: Annotated[bool, Option("--archived", help="Show archived messages.")] = False,
) -> None:
    """List contact-form messages in the admin inbox."""
    params: Dict[str, Any] = {"archived": str(archived).lower()}
    if status:
        params["status"] = status
    try:
        envelope = MessageService(_build_client()).get_all(params)
    except SessionError as exc:
        _fail(exc)
    _render_table(_items(envelope, "messages"), ["_id", "name", "email", "subject", "status", "createdAt"])


@app.command()
def reviews(
    status: Annotated[Optional[str], Option(help="Filter by status (pending, approved, rejected).")] = None,
) -> None:
    """List reviews awaiting or past moderation."""
    params: Dict[str, Any] = {}
    if status:
        params["status"] = status
    try:
        envelope = ReviewService(_build_client()).get_all_reviews(params)
    except SessionError as exc:
        _fail(exc)
    _render_table(_items(envelope, "reviews"), ["_id", "userName", "rating", "status", "product"])


@app.command()
def stats() -> None:
    """Show dashboard totals."""
    try:
        envelope = DashboardService(_build_client()).get_stats()
    except SessionError as exc:
        _fail(exc)
    data = envelope.get("data") or {}
    rows = [{"metric": key, "value": value} for key, value in data.items()] if isinstance(data, dict) else []
    _render_table(rows, ["metric", "value"])


@app.command()
def status(
    timeout: Annotated[float, Option("--timeout", help="Override the request timeout in seconds.")] = DEFAULT_TIMEOUT_SECONDS,
) -> None:
    """Quick health check for the API and the stored session."""
    results = run_status_checks(_build_client(timeout=timeout))
    typer.echo(render_results(results))
    exit_code = 0 if all(result.ok for result in results) else 1
    raise typer.Exit(code=exit_code)


if __name__ == "__main__":
    app()
