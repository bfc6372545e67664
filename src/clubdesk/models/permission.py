"""
Role and permission models.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class Role(str, Enum):
    SUPER_ADMIN = "super_admin"
    STAFF = "staff"
    COACH = "coach"
    PLAYER = "player"
    PARENT = "parent"
    MEDICAL = "medical"
    PARTNER = "partner"


class PermissionName(str, Enum):
    MANAGE_ATTENDANCE = "manage_attendance"
    MANAGE_STATS = "manage_stats"
    MANAGE_TRAINING = "manage_training"
    MANAGE_TEAMS = "manage_teams"
    MANAGE_USERS = "manage_users"
    VIEW_REPORTS = "view_reports"
    MANAGE_PLAYERS = "manage_players"
    MANAGE_SCHEDULES = "manage_schedules"
    MANAGE_MEDICAL = "manage_medical"
    MANAGE_PARTNERSHIPS = "manage_partnerships"
    MANAGE_REGISTRATIONS = "manage_registrations"
    VIEW_COMMUNICATIONS = "view_communications"


class PermissionSource(str, Enum):
    ROLE = "role"
    DIRECT = "direct"
    NONE = "none"


class Permission(BaseModel):
    model_config = {"extra": "ignore"}

    id: Optional[str] = None
    name: str
    description: str = ""
    category: str = "general"


class RoleAssignment(BaseModel):
    model_config = {"extra": "ignore"}

    user_id: Optional[str] = None
    role: Role
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PermissionGrant(BaseModel):
    """A direct per-user grant record. Revocation flips ``is_active`` off."""

    model_config = {"extra": "ignore"}

    user_id: Optional[str] = None
    permission_name: str
    is_active: bool = True
    granted_at: Optional[datetime] = None
    granted_by: Optional[str] = None
    revoked_at: Optional[datetime] = None
    reason: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _embedded_permission(cls, data: object) -> object:
        # user_permissions rows embed the catalog entry as {"permissions": {"name": ...}}
        if isinstance(data, dict) and "permission_name" not in data:
            embedded = data.get("permissions") or {}
            if isinstance(embedded, dict) and embedded.get("name"):
                data = {**data, "permission_name": embedded["name"]}
        return data

    @property
    def changed_at(self) -> Optional[datetime]:
        if not self.is_active and self.revoked_at:
            return self.revoked_at
        return self.granted_at


class EffectivePermission(BaseModel):
    name: str
    granted: bool = False
    source: PermissionSource = PermissionSource.NONE
    granted_at: Optional[datetime] = None
    reason: Optional[str] = None

    @property
    def revocable(self) -> bool:
        """Only direct grants can be revoked; role-derived ones go away with the role."""
        return self.granted and self.source == PermissionSource.DIRECT


class RoleTemplate(BaseModel):
    model_config = {"extra": "ignore"}

    id: str
    name: str
    role: Role
    description: str = ""
    permissions: list[str] = Field(default_factory=list)
