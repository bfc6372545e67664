"""
ClubDesk CLI — `clubdesk` command.

Commands:
  clubdesk auth login|status|logout     Email/password sign-in
  clubdesk chat <cmd>                   Chats and messages
  clubdesk users <cmd>                  Pending-user approvals
  clubdesk perms <cmd>                  Roles and permissions (super admin)
  clubdesk staff <cmd>                  Departments and staff
  clubdesk health <cmd>                 Injuries and wellness check-ins
"""

import asyncio
import json
import logging
import os
from pathlib import Path

try:
    import click
    from rich.console import Console
    from rich.logging import RichHandler
except ImportError:
    raise SystemExit("CLI requires extras: pip install clubdesk[cli]")

from clubdesk import __version__
from clubdesk.client import AsyncClubDesk
from clubdesk.errors import AccessDeniedError, ClubDeskError
from clubdesk.notify import Level, Notification, Notifier
from clubdesk.transport.http import DEFAULT_BASE_URL

console = Console()
CONFIG_FILE = Path.home() / ".clubdesk" / "config.json"

_STYLES = {
    Level.SUCCESS: "green",
    Level.INFO: "cyan",
    Level.WARNING: "yellow",
    Level.ERROR: "red",
}


def _load_config() -> dict:
    try:
        cfg = json.loads(CONFIG_FILE.read_text())
    except (FileNotFoundError, json.JSONDecodeError):
        cfg = {}
    if os.environ.get("CLUBDESK_URL"):
        cfg["base_url"] = os.environ["CLUBDESK_URL"]
    if os.environ.get("CLUBDESK_API_KEY"):
        cfg["api_key"] = os.environ["CLUBDESK_API_KEY"]
    return cfg


def _save_config(cfg: dict) -> None:
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_FILE.write_text(json.dumps(cfg, indent=2))


def _print_notification(note: Notification) -> None:
    style = _STYLES[note.level]
    text = f"[{style}]{note.title}[/{style}]"
    if note.message:
        text += f" {note.message}"
    console.print(text)


def _get_client() -> AsyncClubDesk:
    cfg = _load_config()
    if not cfg.get("access_token") or not cfg.get("user_id"):
        console.print("[red]Not logged in. Run `clubdesk auth login` first.[/red]")
        raise SystemExit(1)
    return AsyncClubDesk(
        base_url=cfg.get("base_url", DEFAULT_BASE_URL),
        api_key=cfg.get("api_key", ""),
        access_token=cfg["access_token"],
        user_id=cfg["user_id"],
        notifier=Notifier(listener=_print_notification),
    )


def _run(coro):
    try:
        return asyncio.run(coro)
    except AccessDeniedError as e:
        console.print(f"[red]Restricted access.[/red] {e.message}")
        if e.required:
            console.print(f"[dim]Requires role: {e.required}[/dim]")
        raise SystemExit(1)
    except ClubDeskError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise SystemExit(1)


@click.group()
@click.version_option(__version__)
@click.option("-v", "--verbose", is_flag=True, help="Log requests and realtime traffic")
def main(verbose: bool):
    """ClubDesk CLI — team chat and club administration."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG, format="%(message)s", datefmt="[%X]",
            handlers=[RichHandler(console=console, rich_tracebacks=True)],
        )


# Register subcommands from separate modules
from clubdesk.cli.auth import auth
from clubdesk.cli.chat import chat
from clubdesk.cli.users import users
from clubdesk.cli.perms import perms
from clubdesk.cli.staff import staff
from clubdesk.cli.health import health

main.add_command(auth)
main.add_command(chat)
main.add_command(users)
main.add_command(perms)
main.add_command(staff)
main.add_command(health)


if __name__ == "__main__":
    main()
