"""
Health, injury and fitness models.
"""

import datetime as dt
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel


class InjuryStatus(str, Enum):
    HEALTHY = "healthy"
    INJURED = "injured"
    RECOVERING = "recovering"
    CLEARED = "cleared"


class HealthRecord(BaseModel):
    """A health_wellness row: injury status plus fitness measurements."""

    model_config = {"extra": "ignore"}

    id: str
    player_id: Optional[str] = None
    date: Optional[dt.date] = None
    injury_status: Optional[InjuryStatus] = None
    injury_description: Optional[str] = None
    medical_notes: Optional[str] = None
    weight: Optional[float] = None
    body_fat_percentage: Optional[float] = None
    fitness_score: Optional[float] = None
    vertical_jump: Optional[float] = None
    sprint_time: Optional[float] = None
    players: Optional[dict[str, Any]] = None
    updated_at: Optional[dt.datetime] = None

    @property
    def player_name(self) -> str:
        profile = (self.players or {}).get("profiles") or {}
        return profile.get("full_name", "")


class HealthCheckin(BaseModel):
    model_config = {"extra": "ignore"}

    id: Optional[str] = None
    player_id: str
    checkin_date: dt.date
    energy_level: Optional[int] = None
    sleep_hours: Optional[float] = None
    soreness_level: Optional[int] = None
    stress_level: Optional[int] = None
    pain_level: Optional[int] = None
    pain_location: Optional[str] = None
    mood: Optional[int] = None
    notes: Optional[str] = None
