"""
User profile models.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Profile(BaseModel):
    model_config = {"extra": "ignore"}

    id: str
    email: Optional[str] = None
    full_name: str = ""
    phone: Optional[str] = None
    created_at: Optional[datetime] = None
    approval_status: ApprovalStatus = ApprovalStatus.PENDING
    rejection_reason: Optional[str] = None
