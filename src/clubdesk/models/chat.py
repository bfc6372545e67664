"""
Chat and participant models.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class ChatType(str, Enum):
    PRIVATE = "private"
    GROUP = "group"
    TEAM = "team"


class ParticipantRole(str, Enum):
    ADMIN = "admin"
    MODERATOR = "moderator"
    MEMBER = "member"


class ChatParticipant(BaseModel):
    model_config = {"extra": "ignore"}

    id: Optional[str] = None
    chat_id: Optional[str] = None
    user_id: str
    role: ParticipantRole = ParticipantRole.MEMBER
    joined_at: Optional[datetime] = None


class Chat(BaseModel):
    model_config = {"extra": "ignore"}

    id: str
    name: str = ""
    chat_type: ChatType = ChatType.GROUP
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    is_archived: bool = False
    is_pinned: bool = False
    team_id: Optional[str] = None
    last_message_at: Optional[datetime] = None
    chat_participants: list[ChatParticipant] = Field(default_factory=list)
