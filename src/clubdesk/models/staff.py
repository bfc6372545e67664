"""
Staff and department models.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class EmploymentStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    TERMINATED = "terminated"
    ON_LEAVE = "on_leave"


class Department(BaseModel):
    model_config = {"extra": "ignore"}

    id: str
    name: str
    description: Optional[str] = None
    budget_allocation: float = 0
    is_active: bool = True
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    staff_count: int = 0


class StaffMember(BaseModel):
    model_config = {"extra": "ignore"}

    id: str
    employee_id: Optional[str] = None
    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    phone: Optional[str] = None
    department: Optional[str] = None
    position: Optional[str] = None
    employment_status: EmploymentStatus = EmploymentStatus.ACTIVE
    hire_date: Optional[date] = None
    payment_type: Optional[str] = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
