"""CLI: clubdesk auth login|status|logout"""

from typing import Optional

import click
from rich.console import Console

from clubdesk.client import AsyncClubDesk
from clubdesk.transport.http import DEFAULT_BASE_URL

console = Console()


def _load_config() -> dict:
    from clubdesk.cli.main import _load_config
    return _load_config()


def _save_config(cfg: dict) -> None:
    from clubdesk.cli.main import _save_config
    _save_config(cfg)


def _run(coro):
    from clubdesk.cli.main import _run
    return _run(coro)


@click.group()
def auth():
    """Authentication commands."""


@auth.command("login")
@click.option("--base-url", default=None, help="Backend base URL")
@click.option("--api-key", default=None, help="Project API key")
@click.option("--email", default=None)
@click.option("--password", default=None)
def auth_login(base_url: Optional[str], api_key: Optional[str], email: Optional[str], password: Optional[str]):
    """Sign in with email and password."""

    async def _login():
        cfg = _load_config()
        url = base_url or cfg.get("base_url", DEFAULT_BASE_URL)
        key = api_key or cfg.get("api_key", "")
        client = AsyncClubDesk(base_url=url, api_key=key)
        try:
            address = email or click.prompt("Email")
            secret = password or click.prompt("Password", hide_input=True)
            with console.status("Signing in..."):
                session = await client.sign_in(address, secret)
        finally:
            await client.close()
        console.print(f"[green]Logged in as {address} (ID: {client.user_id})[/green]")

        _save_config({**cfg, "access_token": session["access_token"], "user_id": client.user_id,
                      "email": address, "base_url": url, "api_key": key})
        console.print("[dim]Token saved to ~/.clubdesk/config.json[/dim]")

    _run(_login())


@auth.command("status")
def auth_status():
    """Show current auth status."""
    cfg = _load_config()
    if cfg.get("access_token"):
        console.print(f"[green]Logged in[/green] as {cfg.get('email', 'unknown')} (ID: {cfg.get('user_id')})")
    else:
        console.print("[yellow]Not logged in. Run `clubdesk auth login`.[/yellow]")


@auth.command("logout")
def auth_logout():
    """Clear saved credentials."""
    cfg = _load_config()
    _save_config({k: cfg[k] for k in ("base_url", "api_key") if k in cfg})
    console.print("[green]Logged out.[/green]")
