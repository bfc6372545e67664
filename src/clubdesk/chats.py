"""
Chats REST API — chat rooms and their participants.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from clubdesk.errors import BackendError
from clubdesk.models.chat import Chat, ChatParticipant, ChatType, ParticipantRole
from clubdesk.models.events import Table
from clubdesk.transport.http import HttpClient, eq, in_

CHAT_COLUMNS = "*,chat_participants(id,user_id,role,joined_at)"


class ChatsAPI:
    def __init__(self, http: HttpClient):
        self._http = http

    async def list(self, user_id: str, include_archived: bool = False) -> list[Chat]:
        """Chats the user participates in, most recently updated first."""
        memberships = await self._http.select(
            Table.CHAT_PARTICIPANTS, "chat_id", filters={"user_id": eq(user_id)},
        )
        chat_ids = [m["chat_id"] for m in memberships]
        if not chat_ids:
            return []
        filters = {"id": in_(chat_ids)}
        if not include_archived:
            filters["is_archived"] = eq(False)
        rows = await self._http.select(Table.CHATS, CHAT_COLUMNS, filters=filters, order="updated_at.desc")
        return [Chat.model_validate(r) for r in rows]

    async def get(self, chat_id: str) -> Optional[Chat]:
        rows = await self._http.select(Table.CHATS, CHAT_COLUMNS, filters={"id": eq(chat_id)}, limit=1)
        return Chat.model_validate(rows[0]) if rows else None

    async def create(
        self,
        created_by: str,
        participants: list[str],
        chat_type: ChatType = ChatType.GROUP,
        name: Optional[str] = None,
        team_id: Optional[str] = None,
    ) -> Chat:
        """Create a chat; the creator joins as admin, everyone else as member."""
        rows = await self._http.insert(Table.CHATS, {
            "name": name or f"Chat {datetime.now(timezone.utc):%Y-%m-%d %H:%M}",
            "chat_type": chat_type.value,
            "created_by": created_by,
            "team_id": team_id,
        })
        if not rows:
            raise BackendError("Chat was not created", code="empty_response")
        chat = Chat.model_validate(rows[0])
        members = [{"chat_id": chat.id, "user_id": created_by, "role": ParticipantRole.ADMIN.value}]
        members += [
            {"chat_id": chat.id, "user_id": uid, "role": ParticipantRole.MEMBER.value}
            for uid in dict.fromkeys(participants) if uid != created_by
        ]
        added = await self._http.insert(Table.CHAT_PARTICIPANTS, members)
        chat.chat_participants = [ChatParticipant.model_validate(m) for m in added]
        return chat

    async def update(self, chat_id: str, **fields: Any) -> Optional[Chat]:
        rows = await self._http.update(Table.CHATS, fields, {"id": eq(chat_id)})
        return Chat.model_validate(rows[0]) if rows else None

    async def rename(self, chat_id: str, name: str) -> Optional[Chat]:
        return await self.update(chat_id, name=name)

    async def archive(self, chat_id: str) -> Optional[Chat]:
        return await self.update(chat_id, is_archived=True)

    async def unarchive(self, chat_id: str) -> Optional[Chat]:
        return await self.update(chat_id, is_archived=False)

    async def delete(self, chat_id: str) -> None:
        """Delete a chat permanently: messages, then participants, then the chat."""
        await self.clear_history(chat_id)
        await self._http.delete(Table.CHAT_PARTICIPANTS, {"chat_id": eq(chat_id)})
        await self._http.delete(Table.CHATS, {"id": eq(chat_id)})

    async def clear_history(self, chat_id: str) -> None:
        """Delete every message in the chat. The chat and its participants stay."""
        await self._http.delete(Table.MESSAGES, {"chat_id": eq(chat_id)})

    async def participants(self, chat_id: str) -> list[ChatParticipant]:
        rows = await self._http.select(
            Table.CHAT_PARTICIPANTS, filters={"chat_id": eq(chat_id)}, order="joined_at.asc",
        )
        return [ChatParticipant.model_validate(r) for r in rows]

    async def add_participant(self, chat_id: str, user_id: str,
                              role: ParticipantRole = ParticipantRole.MEMBER) -> ChatParticipant:
        rows = await self._http.insert(Table.CHAT_PARTICIPANTS, {
            "chat_id": chat_id, "user_id": user_id, "role": role.value,
        })
        if not rows:
            raise BackendError("Participant was not added", code="empty_response")
        return ChatParticipant.model_validate(rows[0])

    async def remove_participant(self, chat_id: str, user_id: str) -> None:
        await self._http.delete(Table.CHAT_PARTICIPANTS, {"chat_id": eq(chat_id), "user_id": eq(user_id)})
