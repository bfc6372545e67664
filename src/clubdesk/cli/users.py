"""CLI: clubdesk users pending|approve|reject"""

import click
from rich.console import Console
from rich.table import Table

from clubdesk.models.permission import Role

console = Console()


def _get_client():
    from clubdesk.cli.main import _get_client
    return _get_client()


def _run(coro):
    from clubdesk.cli.main import _run
    return _run(coro)


@click.group()
def users():
    """Pending-user approvals (super admin)."""


@users.command("pending")
def users_pending():
    """List users waiting for approval."""

    async def _pending():
        client = _get_client()
        try:
            await client.permissions.require_role(Role.SUPER_ADMIN)
            queue = client.approvals()
            await queue.refresh()
        finally:
            await client.close()
        if not queue.pending:
            console.print("[dim]No pending users.[/dim]")
            return
        table = Table(title=f"Pending users ({len(queue.pending)})")
        table.add_column("ID", style="bold")
        table.add_column("Name")
        table.add_column("Email")
        table.add_column("Signed up")
        for p in queue.pending:
            signed_up = p.created_at.strftime("%Y-%m-%d %H:%M") if p.created_at else ""
            table.add_row(p.id, p.full_name, p.email or "", signed_up)
        console.print(table)

    _run(_pending())


@users.command("approve")
@click.argument("user_id")
def users_approve(user_id: str):
    """Approve a pending user and give them the player role."""

    async def _approve():
        client = _get_client()
        try:
            await client.permissions.require_role(Role.SUPER_ADMIN)
            ok = await client.approvals().approve(user_id)
        finally:
            await client.close()
        if not ok:
            raise SystemExit(1)

    _run(_approve())


@users.command("reject")
@click.argument("user_id")
@click.option("-r", "--reason", default="", help="Shown to the user")
def users_reject(user_id: str, reason: str):
    """Reject a pending user."""

    async def _reject():
        client = _get_client()
        try:
            await client.permissions.require_role(Role.SUPER_ADMIN)
            ok = await client.approvals().reject(user_id, reason)
        finally:
            await client.close()
        if not ok:
            raise SystemExit(1)

    _run(_reject())
