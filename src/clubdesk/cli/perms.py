"""CLI: clubdesk perms show|grant|revoke|assign-role|remove-role|templates|apply-template"""

import click
from rich.console import Console
from rich.table import Table

from clubdesk.models.permission import PermissionName, PermissionSource, Role

console = Console()

_SOURCE_STYLE = {
    PermissionSource.ROLE: "[blue]role[/blue]",
    PermissionSource.DIRECT: "[green]direct[/green]",
    PermissionSource.NONE: "[dim]-[/dim]",
}


def _get_client():
    from clubdesk.cli.main import _get_client
    return _get_client()


def _run(coro):
    from clubdesk.cli.main import _run
    return _run(coro)


async def _manager(client, user_id: str):
    await client.permissions.require_role(Role.SUPER_ADMIN)
    manager = client.permission_manager(user_id)
    if not await manager.load():
        raise SystemExit(1)
    return manager


@click.group()
def perms():
    """Roles and permissions (super admin)."""


@perms.command("show")
@click.argument("user_id")
def perms_show(user_id: str):
    """Show a user's roles and effective permissions."""

    async def _show():
        client = _get_client()
        try:
            manager = await _manager(client, user_id)
        finally:
            await client.close()
        roles = ", ".join(r.value for r in manager.active_roles) or "none"
        console.print(f"[bold]Roles:[/bold] {roles}")
        for category, permissions in manager.by_category().items():
            table = Table(title=category.title())
            table.add_column("Permission", style="bold")
            table.add_column("Granted")
            table.add_column("Source")
            table.add_column("Reason")
            for p in permissions:
                state = manager.state(p.name)
                table.add_row(
                    p.name, "[green]yes[/green]" if state.granted else "no",
                    _SOURCE_STYLE[state.source], state.reason or "",
                )
            console.print(table)

    _run(_show())


@perms.command("grant")
@click.argument("user_id")
@click.argument("permission", type=click.Choice([p.value for p in PermissionName]))
@click.option("-r", "--reason", prompt=True, help="Why the permission is granted")
def perms_grant(user_id: str, permission: str, reason: str):
    """Grant a permission directly."""

    async def _grant():
        client = _get_client()
        try:
            manager = await _manager(client, user_id)
            ok = await manager.toggle(permission, True, reason)
        finally:
            await client.close()
        if not ok:
            raise SystemExit(1)

    _run(_grant())


@perms.command("revoke")
@click.argument("user_id")
@click.argument("permission", type=click.Choice([p.value for p in PermissionName]))
@click.option("-r", "--reason", default="")
def perms_revoke(user_id: str, permission: str, reason: str):
    """Revoke a directly granted permission."""

    async def _revoke():
        client = _get_client()
        try:
            manager = await _manager(client, user_id)
            ok = await manager.toggle(permission, False, reason)
        finally:
            await client.close()
        if not ok:
            raise SystemExit(1)

    _run(_revoke())


@perms.command("assign-role")
@click.argument("user_id")
@click.argument("role", type=click.Choice([r.value for r in Role]))
def perms_assign_role(user_id: str, role: str):
    """Give a user a role."""

    async def _assign():
        client = _get_client()
        try:
            manager = await _manager(client, user_id)
            ok = await manager.assign_role(Role(role))
        finally:
            await client.close()
        if not ok:
            raise SystemExit(1)

    _run(_assign())


@perms.command("remove-role")
@click.argument("user_id")
@click.argument("role", type=click.Choice([r.value for r in Role]))
def perms_remove_role(user_id: str, role: str):
    """Take a role away from a user."""

    async def _remove():
        client = _get_client()
        try:
            manager = await _manager(client, user_id)
            ok = await manager.remove_role(Role(role))
        finally:
            await client.close()
        if not ok:
            raise SystemExit(1)

    _run(_remove())


@perms.command("templates")
def perms_templates():
    """List role templates."""

    async def _templates():
        client = _get_client()
        try:
            await client.permissions.require_role(Role.SUPER_ADMIN)
            templates = await client.permissions.role_templates()
        finally:
            await client.close()
        table = Table(title="Role templates")
        table.add_column("ID", style="bold")
        table.add_column("Name")
        table.add_column("Role")
        table.add_column("Permissions")
        for t in templates:
            table.add_row(t.id, t.name, t.role.value, ", ".join(t.permissions))
        console.print(table)

    _run(_templates())


@perms.command("apply-template")
@click.argument("user_id")
@click.argument("template_id")
def perms_apply_template(user_id: str, template_id: str):
    """Apply a role template to a user."""

    async def _apply():
        client = _get_client()
        try:
            manager = await _manager(client, user_id)
            templates = {t.id: t for t in await client.permissions.role_templates()}
            if template_id not in templates:
                console.print(f"[red]Unknown template: {template_id}[/red]")
                raise SystemExit(1)
            ok = await manager.apply_template(templates[template_id])
        finally:
            await client.close()
        if not ok:
            raise SystemExit(1)

    _run(_apply())
