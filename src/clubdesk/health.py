"""
Health REST API — injury records, daily wellness check-ins and fitness data.

Injury and fitness measurements share the ``health_wellness`` table; a row
with an injury status is an injury record.
"""

from collections import Counter
from datetime import date
from typing import Any, Optional

from clubdesk.errors import BackendError, ValidationError
from clubdesk.models.events import Table
from clubdesk.models.health import HealthCheckin, HealthRecord, InjuryStatus
from clubdesk.transport.http import HttpClient, eq, in_

RECORD_COLUMNS = "*,players(profiles(full_name,email))"
ACTIVE_INJURY_STATUSES = (InjuryStatus.INJURED, InjuryStatus.RECOVERING)
RECORD_LIMIT = 50
CHECKIN_SCALE = range(1, 11)


class HealthAPI:
    def __init__(self, http: HttpClient):
        self._http = http

    async def injuries(self, statuses: Optional[list[InjuryStatus]] = None,
                       limit: int = RECORD_LIMIT) -> list[HealthRecord]:
        """Injury records, newest first. Defaults to injured and recovering players."""
        wanted = statuses or list(ACTIVE_INJURY_STATUSES)
        rows = await self._http.select(
            Table.HEALTH_WELLNESS, RECORD_COLUMNS,
            filters={"injury_status": in_([s.value for s in wanted])},
            order="date.desc", limit=limit,
        )
        return [HealthRecord.model_validate(r) for r in rows]

    async def report_injury(self, player_id: str, status: InjuryStatus, description: str = "",
                            medical_notes: str = "", on: Optional[date] = None,
                            created_by: Optional[str] = None) -> HealthRecord:
        rows = await self._http.insert(Table.HEALTH_WELLNESS, {
            "player_id": player_id,
            "date": (on or date.today()).isoformat(),
            "injury_status": status.value,
            "injury_description": description or None,
            "medical_notes": medical_notes or None,
            "created_by": created_by,
        })
        if not rows:
            raise BackendError("Injury record was not stored", code="empty_response")
        return HealthRecord.model_validate(rows[0])

    async def update_injury_status(self, record_id: str, status: InjuryStatus,
                                   medical_notes: Optional[str] = None) -> HealthRecord:
        values: dict[str, Any] = {"injury_status": status.value}
        if medical_notes is not None:
            values["medical_notes"] = medical_notes
        rows = await self._http.update(Table.HEALTH_WELLNESS, values, {"id": eq(record_id)})
        if not rows:
            raise BackendError("Health record not found", code="not_found")
        return HealthRecord.model_validate(rows[0])

    async def injury_breakdown(self) -> dict[InjuryStatus, int]:
        """Count of records per injury status; rows without a status are skipped."""
        rows = await self._http.select(Table.HEALTH_WELLNESS, "injury_status")
        counts = Counter(r["injury_status"] for r in rows if r.get("injury_status"))
        return {status: counts.get(status.value, 0) for status in InjuryStatus}

    async def fitness(self, player_id: str, limit: int = 30) -> list[HealthRecord]:
        rows = await self._http.select(
            Table.HEALTH_WELLNESS, filters={"player_id": eq(player_id)}, order="date.desc", limit=limit,
        )
        return [HealthRecord.model_validate(r) for r in rows]

    # Daily check-ins

    async def checkins(self, player_id: Optional[str] = None, since: Optional[date] = None,
                       limit: int = RECORD_LIMIT) -> list[HealthCheckin]:
        filters = {}
        if player_id:
            filters["player_id"] = eq(player_id)
        if since:
            filters["checkin_date"] = f"gte.{since.isoformat()}"
        rows = await self._http.select(
            Table.DAILY_HEALTH_CHECKINS, filters=filters, order="checkin_date.desc", limit=limit,
        )
        return [HealthCheckin.model_validate(r) for r in rows]

    async def submit_checkin(self, checkin: HealthCheckin) -> HealthCheckin:
        for field in ("energy_level", "soreness_level", "stress_level", "pain_level", "mood"):
            value = getattr(checkin, field)
            if value is not None and value not in CHECKIN_SCALE:
                raise ValidationError(f"{field} must be between 1 and 10", field=field)
        row = checkin.model_dump(mode="json", exclude_none=True, exclude={"id"})
        rows = await self._http.insert(Table.DAILY_HEALTH_CHECKINS, row, upsert=True)
        if not rows:
            raise BackendError("Check-in was not stored", code="empty_response")
        return HealthCheckin.model_validate(rows[0])
