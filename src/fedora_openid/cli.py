"""CLI interface for logging in to Fedora services using Typer."""

import logging
import os
from dataclasses import replace
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from fedora_openid.cookies import CachingJar
from fedora_openid.exceptions import CookieCacheDoesNotExist, CookieCacheError, FedoraError
from fedora_openid.models import Config, SessionConfig, SessionKind
from fedora_openid.session import SessionManager, load_cached_jar
from fedora_openid.storage import Storage

app = typer.Typer(help="Log in to Fedora web services via OpenID")
console = Console()
err_console = Console(stderr=True)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )
    # keep httpx request logs out of the normal output
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def _handle_error(e: Exception) -> None:
    """Print library errors in a user-friendly way and exit."""
    if isinstance(e, FedoraError):
        console.print(f"[red]{e.message}[/red]")
    else:
        console.print(f"[red]Error: {e}[/red]")
    raise typer.Exit(1)


def _resolve_kind(staging: bool, auth_url: Optional[str], config: Config) -> SessionKind:
    if auth_url:
        return SessionKind.CUSTOM
    if staging:
        return SessionKind.STAGING
    try:
        return SessionKind(config.kind)
    except ValueError:
        console.print(f"[red]Unknown session kind in config: {config.kind!r}[/red]")
        raise typer.Exit(1)


def _resolve_credentials(username: Optional[str], config: Config) -> tuple[str, str]:
    """Take credentials from options, then the environment, then prompt for them."""
    username = username or os.environ.get("FEDORA_USERNAME") or config.username
    if not username:
        username = typer.prompt("FAS username")

    password = os.environ.get("FEDORA_PASSWORD")
    if not password:
        password = typer.prompt("FAS password", hide_input=True)

    return username, password


@app.command()
def login(
    login_url: str = typer.Argument(..., help="Login URL of the service (e.g. 'https://bodhi.fedoraproject.org/login')"),
    username: Optional[str] = typer.Option(None, "--username", "-u", help="FAS username"),
    staging: bool = typer.Option(False, "--staging", help="Authenticate against the staging OpenID provider"),
    auth_url: Optional[str] = typer.Option(None, "--auth-url", help="Custom OpenID authentication endpoint"),
    otp: Optional[str] = typer.Option(None, "--otp", help="One-time password for two-factor authentication"),
    timeout: Optional[float] = typer.Option(None, "--timeout", "-t", help="Request timeout in seconds"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Neither use nor write cached session cookies"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Log in and cache the session cookies."""
    _configure_logging(verbose)

    storage = Storage()
    config = storage.get_config()
    kind = _resolve_kind(staging, auth_url, config)
    cache_cookies = config.cache_cookies and not no_cache

    if cache_cookies and load_cached_jar(storage, login_url) is not None:
        console.print("[green]Reused cached session.[/green]")
        return

    resolved_username, password = _resolve_credentials(username, config)

    session_config = SessionConfig(
        login_url=login_url,
        username=resolved_username,
        password=password,
        otp=otp,
        kind=kind,
        auth_url=auth_url,
        timeout=timeout if timeout is not None else config.timeout,
        cache_cookies=cache_cookies,
    )

    try:
        with SessionManager(session_config, storage).build() as session:
            if session.params is None:
                console.print("[green]Reused cached session.[/green]")
                return

            console.print("[green]Successfully logged in.[/green]")
            if session.params.sreg_nickname:
                console.print(f"  Nickname: {session.params.sreg_nickname}")
            if session.params.identity:
                console.print(f"  Identity: {session.params.identity}")
    except FedoraError as e:
        _handle_error(e)


@app.command()
def status() -> None:
    """Show the cached session cookies."""
    storage = Storage()

    try:
        jar = CachingJar.load(storage.cookie_cache_path)
    except CookieCacheDoesNotExist:
        console.print("[yellow]No cached session.[/yellow]")
        return
    except CookieCacheError as e:
        console.print(f"[yellow]Cookie cache is unusable: {e.message}[/yellow]")
        return

    console.print(f"Login URL: [cyan]{jar.login_url or '-'}[/cyan]")
    if jar.is_fresh():
        console.print("Status: [green]fresh[/green]")
    else:
        console.print("Status: [red]expired[/red]")

    table = Table(show_header=True, header_style="bold")
    table.add_column("Name", style="cyan")
    table.add_column("Domain")
    table.add_column("Path")
    table.add_column("Expires")

    for record in sorted(jar.records(), key=lambda r: (r.domain, r.name)):
        if record.expires is None:
            expires = "session"
        elif record.is_expired():
            expires = f"[red]{record.expires:%Y-%m-%d %H:%M:%S %Z}[/red]"
        else:
            expires = f"{record.expires:%Y-%m-%d %H:%M:%S %Z}"
        table.add_row(record.name, record.domain, record.path, expires)

    console.print(table)


@app.command()
def logout() -> None:
    """Delete the cached session cookies."""
    storage = Storage()
    if storage.clear_cookie_cache():
        console.print("[green]Removed cached session.[/green]")
    else:
        console.print("[yellow]No cached session.[/yellow]")


@app.command("config")
def configure(
    username: Optional[str] = typer.Option(None, "--username", "-u", help="Default FAS username"),
    kind: Optional[str] = typer.Option(None, "--kind", "-k", help="Default OpenID provider (default/staging)"),
    timeout: Optional[float] = typer.Option(None, "--timeout", "-t", help="Default request timeout in seconds"),
    cache: Optional[bool] = typer.Option(None, "--cache/--no-cache", help="Cache session cookies on disk"),
) -> None:
    """Show or update the default settings."""
    storage = Storage()
    config = storage.get_config()

    if kind is not None and kind not in (SessionKind.DEFAULT.value, SessionKind.STAGING.value):
        console.print(f"[red]Invalid kind '{kind}'. Use 'default' or 'staging'.[/red]")
        raise typer.Exit(1)

    updates = {
        key: value
        for key, value in {
            "username": username,
            "kind": kind,
            "timeout": timeout,
            "cache_cookies": cache,
        }.items()
        if value is not None
    }

    if updates:
        config = replace(config, **updates)
        storage.save_config(config)
        console.print(f"[green]Saved:[/green] {storage.config_path}")

    console.print(f"  Username: {config.username or '-'}")
    console.print(f"  Kind: {config.kind}")
    console.print(f"  Timeout: {config.timeout:g}s")
    console.print(f"  Cache cookies: {'yes' if config.cache_cookies else 'no'}")


if __name__ == "__main__":
    app()
