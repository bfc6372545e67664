"""CLI: clubdesk staff departments|members|add-department|deactivate-department"""

import json
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

console = Console()


def _get_client():
    from clubdesk.cli.main import _get_client
    return _get_client()


def _run(coro):
    from clubdesk.cli.main import _run
    return _run(coro)


@click.group()
def staff():
    """Departments and staff members."""


@staff.command("departments")
@click.option("--headcount", is_flag=True, help="Count active staff per department")
def staff_departments(headcount: bool):
    """List active departments."""

    async def _departments():
        client = _get_client()
        try:
            departments = await client.staff.departments(with_headcount=headcount)
        finally:
            await client.close()
        table = Table(title=f"Departments ({len(departments)})")
        table.add_column("ID", style="bold")
        table.add_column("Name")
        table.add_column("Budget", justify="right")
        if headcount:
            table.add_column("Staff", justify="right")
        for d in departments:
            row = [d.id, d.name, f"{d.budget_allocation:,.2f}"]
            if headcount:
                row.append(str(d.staff_count))
            table.add_row(*row)
        console.print(table)

    _run(_departments())


@staff.command("members")
@click.option("-d", "--department", default=None)
@click.option("--json-output", "--json", is_flag=True)
def staff_members(department: Optional[str], json_output: bool):
    """List active staff members."""

    async def _members():
        client = _get_client()
        try:
            members = await client.staff.members(department)
        finally:
            await client.close()
        if json_output:
            click.echo(json.dumps([m.model_dump(mode="json") for m in members], indent=2))
            return
        table = Table(title=f"Staff ({len(members)})")
        table.add_column("Name", style="bold")
        table.add_column("Department")
        table.add_column("Position")
        table.add_column("Email")
        for m in members:
            table.add_row(m.full_name, m.department or "", m.position or "", m.email or "")
        console.print(table)

    _run(_members())


@staff.command("add-department")
@click.argument("name")
@click.option("--description", default="")
@click.option("--budget", default=0.0, type=float)
def staff_add_department(name: str, description: str, budget: float):
    """Create a department."""

    async def _add():
        client = _get_client()
        try:
            dept = await client.staff.create_department(name, description, budget, created_by=client.user_id)
        finally:
            await client.close()
        console.print(f"[green]Department created: {dept.name} ({dept.id})[/green]")

    _run(_add())


@staff.command("deactivate-department")
@click.argument("department_id")
def staff_deactivate_department(department_id: str):
    """Deactivate a department."""

    async def _deactivate():
        client = _get_client()
        try:
            dept = await client.staff.deactivate_department(department_id)
        finally:
            await client.close()
        console.print(f"[green]Department {dept.name} deactivated.[/green]")

    _run(_deactivate())
