"""
Chat message models.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator

TEMP_ID_PREFIX = "temp_"


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    FILE = "file"
    LINK = "link"
    LOCATION = "location"


class DeliveryState(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class EditHistoryEntry(BaseModel):
    content: Optional[str] = None
    edited_at: datetime


class Reaction(BaseModel):
    id: str
    message_id: str
    user_id: str
    emoji: str
    created_at: Optional[datetime] = None


class MediaRef(BaseModel):
    url: str
    type: Optional[str] = None
    size: Optional[int] = None


class Message(BaseModel):
    model_config = {"extra": "ignore"}

    id: str
    chat_id: str
    sender_id: str
    content: Optional[str] = None
    message_type: MessageType = MessageType.TEXT
    media_url: Optional[str] = None
    media_type: Optional[str] = None
    media_size: Optional[int] = None
    reply_to_id: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    edited_at: Optional[datetime] = None
    is_edited: bool = False
    is_deleted: bool = False
    is_recalled: bool = False
    is_archived: bool = False
    edit_history: list[EditHistoryEntry] = Field(default_factory=list)
    reactions: list[Reaction] = Field(default_factory=list)
    client_id: Optional[str] = None

    # Local-only bookkeeping, never sent to the backend
    state: DeliveryState = DeliveryState.CONFIRMED
    temp_id: Optional[str] = None
    error: Optional[str] = None

    @field_validator("is_edited", "is_deleted", "is_recalled", "is_archived", mode="before")
    @classmethod
    def _null_is_false(cls, v: Optional[bool]) -> bool:
        return bool(v)

    @field_validator("edit_history", "reactions", mode="before")
    @classmethod
    def _null_is_empty(cls, v: object) -> object:
        return v if isinstance(v, list) else []

    @property
    def is_local(self) -> bool:
        """True while this record has no server id yet."""
        return self.id.startswith(TEMP_ID_PREFIX)

    @property
    def pending(self) -> bool:
        return self.state == DeliveryState.PENDING

    @property
    def failed(self) -> bool:
        return self.state == DeliveryState.FAILED

    def reaction_by(self, user_id: str, emoji: str) -> Optional[Reaction]:
        for reaction in self.reactions:
            if reaction.user_id == user_id and reaction.emoji == emoji:
                return reaction
        return None

    @classmethod
    def from_row(cls, row: dict) -> "Message":
        """Build from a backend row; embedded ``message_reactions`` become ``reactions``."""
        data = dict(row)
        embedded = data.pop("message_reactions", None)
        if embedded and not data.get("reactions"):
            data["reactions"] = [{"message_id": data.get("id"), **r} for r in embedded]
        return cls.model_validate(data)
