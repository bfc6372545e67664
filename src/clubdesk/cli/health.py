"""CLI: clubdesk health injuries|breakdown|update|checkins"""

from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from clubdesk.models.health import InjuryStatus

console = Console()

_STATUS_STYLE = {
    InjuryStatus.INJURED: "red",
    InjuryStatus.RECOVERING: "yellow",
    InjuryStatus.CLEARED: "green",
    InjuryStatus.HEALTHY: "green",
}


def _get_client():
    from clubdesk.cli.main import _get_client
    return _get_client()


def _run(coro):
    from clubdesk.cli.main import _run
    return _run(coro)


@click.group()
def health():
    """Injuries and wellness check-ins."""


@health.command("injuries")
@click.option("-s", "--status", "statuses", multiple=True, type=click.Choice([s.value for s in InjuryStatus]))
def health_injuries(statuses: tuple):
    """List injury records (injured and recovering by default)."""

    async def _injuries():
        client = _get_client()
        try:
            records = await client.health.injuries([InjuryStatus(s) for s in statuses] or None)
        finally:
            await client.close()
        table = Table(title=f"Injury records ({len(records)})")
        table.add_column("ID", style="bold")
        table.add_column("Player")
        table.add_column("Date")
        table.add_column("Status")
        table.add_column("Description")
        for r in records:
            style = _STATUS_STYLE.get(r.injury_status, "white") if r.injury_status else "white"
            status = r.injury_status.value if r.injury_status else ""
            table.add_row(
                r.id, r.player_name or (r.player_id or ""), r.date.isoformat() if r.date else "",
                f"[{style}]{status}[/{style}]", r.injury_description or "",
            )
        console.print(table)

    _run(_injuries())


@health.command("breakdown")
def health_breakdown():
    """Count health records by injury status."""

    async def _breakdown():
        client = _get_client()
        try:
            counts = await client.health.injury_breakdown()
        finally:
            await client.close()
        table = Table(title="Injury breakdown")
        table.add_column("Status")
        table.add_column("Records", justify="right")
        for status, count in counts.items():
            table.add_row(status.value, str(count))
        console.print(table)

    _run(_breakdown())


@health.command("update")
@click.argument("record_id")
@click.argument("status", type=click.Choice([s.value for s in InjuryStatus]))
@click.option("-n", "--notes", default=None, help="Medical notes")
def health_update(record_id: str, status: str, notes: Optional[str]):
    """Change the injury status of a record."""

    async def _update():
        client = _get_client()
        try:
            record = await client.health.update_injury_status(record_id, InjuryStatus(status), notes)
        finally:
            await client.close()
        console.print(f"[green]Record {record.id} is now {status}.[/green]")

    _run(_update())


@health.command("checkins")
@click.option("-p", "--player", "player_id", default=None)
@click.option("--limit", default=20, type=int)
def health_checkins(player_id: Optional[str], limit: int):
    """List recent wellness check-ins."""

    async def _checkins():
        client = _get_client()
        try:
            checkins = await client.health.checkins(player_id, limit=limit)
        finally:
            await client.close()
        table = Table(title=f"Check-ins ({len(checkins)})")
        table.add_column("Date")
        table.add_column("Player")
        table.add_column("Energy", justify="right")
        table.add_column("Sleep", justify="right")
        table.add_column("Soreness", justify="right")
        table.add_column("Mood", justify="right")

        def fmt(value) -> str:
            return "" if value is None else str(value)

        for c in checkins:
            table.add_row(
                c.checkin_date.isoformat(), c.player_id, fmt(c.energy_level), fmt(c.sleep_hours),
                fmt(c.soreness_level), fmt(c.mood),
            )
        console.print(table)

    _run(_checkins())
