"""
Messages REST API — message rows, reactions and chat media uploads.
"""

from __future__ import annotations

import mimetypes
import secrets
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from clubdesk.errors import BackendError, ConflictError, ValidationError
from clubdesk.models.events import Table
from clubdesk.models.message import MediaRef, Message, MessageType, Reaction
from clubdesk.transport.http import HttpClient, eq, ilike

MEDIA_BUCKET = "chat-media"
PAGE_SIZE = 50
MESSAGE_COLUMNS = "*,message_reactions(id,emoji,user_id,created_at)"
SEARCH_LIMIT = 50


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def media_path(message_type: MessageType, filename: str) -> str:
    """Storage key for an upload: ``images/1712345678901-k3j9x2.png``."""
    ext = Path(filename).suffix.lstrip(".") or "bin"
    return f"{message_type.value}s/{int(time.time() * 1000)}-{secrets.token_hex(6)}.{ext}"


class MessagesAPI:
    def __init__(self, http: HttpClient):
        self._http = http

    async def fetch_page(self, chat_id: str, offset: int = 0, limit: int = PAGE_SIZE) -> list[Message]:
        """One page of a chat's history, newest first."""
        rows = await self._http.select(
            Table.MESSAGES, MESSAGE_COLUMNS,
            filters={"chat_id": eq(chat_id)},
            order="created_at.desc", limit=limit, offset=offset,
        )
        return [Message.from_row(r) for r in rows]

    async def get(self, message_id: str) -> Optional[Message]:
        rows = await self._http.select(Table.MESSAGES, MESSAGE_COLUMNS, filters={"id": eq(message_id)}, limit=1)
        return Message.from_row(rows[0]) if rows else None

    async def insert(
        self,
        chat_id: str,
        sender_id: str,
        content: Optional[str],
        message_type: MessageType = MessageType.TEXT,
        media: Optional[MediaRef] = None,
        client_id: Optional[str] = None,
    ) -> Optional[Message]:
        """Insert a message row. The realtime feed echoes it to every subscriber."""
        row: dict[str, Any] = {
            "chat_id": chat_id,
            "sender_id": sender_id,
            "content": content,
            "message_type": message_type.value,
            "client_id": client_id,
        }
        if media:
            row.update({"media_url": media.url, "media_type": media.type, "media_size": media.size})
        rows = await self._http.insert(Table.MESSAGES, row)
        return Message.from_row(rows[0]) if rows else None

    async def edit(self, message_id: str, new_content: str) -> Message:
        """Replace the content, moving the old content into edit_history.

        Read-then-write guarded by the ``updated_at`` value read: if another
        client wrote in between, no row matches and ConflictError is raised.
        """
        current = await self.get(message_id)
        if current is None:
            raise BackendError("Message not found", code="not_found")
        now = _now()
        history = [h.model_dump(mode="json") for h in current.edit_history]
        history.append({"content": current.content, "edited_at": now})
        filters = {"id": eq(message_id)}
        if current.updated_at is not None:
            filters["updated_at"] = eq(current.updated_at.isoformat())
        rows = await self._http.update(Table.MESSAGES, {
            "content": new_content,
            "edit_history": history,
            "is_edited": True,
            "edited_at": now,
            "updated_at": now,
        }, filters)
        if not rows:
            raise ConflictError("Message was changed by someone else. Reload and try again.",
                                details={"message_id": message_id})
        return Message.from_row(rows[0])

    async def delete(self, message_id: str) -> None:
        await self._http.delete(Table.MESSAGES, {"id": eq(message_id)})

    async def search(self, query: str, chat_id: Optional[str] = None, limit: int = SEARCH_LIMIT) -> list[Message]:
        """Messages whose content contains ``query``, newest first.

        Without ``chat_id`` every chat the caller can read is searched.
        """
        text = (query or "").strip()
        if not text:
            return []
        filters = {"content": ilike(text)}
        if chat_id:
            filters["chat_id"] = eq(chat_id)
        rows = await self._http.select(Table.MESSAGES, "*", filters=filters, order="created_at.desc", limit=limit)
        return [Message.from_row(r) for r in rows]

    async def forward(self, message_id: str, target_chat_ids: list[str]) -> Any:
        if not target_chat_ids:
            raise ValidationError("Please select at least one chat", field="target_chat_ids")
        return await self._http.rpc("rpc_forward_message", {
            "p_source_message_id": message_id, "p_target_chat_ids": list(target_chat_ids),
        })

    async def recall(self, message_id: str) -> Any:
        """Recall for all participants. The backend enforces the sender and time window too."""
        return await self._http.rpc("rpc_edit_or_recall_message", {"p_message_id": message_id, "p_recall": True})

    async def set_archived(self, message_id: str, archived: bool = True) -> Optional[Message]:
        rows = await self._http.update(Table.MESSAGES, {"is_archived": archived}, {"id": eq(message_id)})
        return Message.from_row(rows[0]) if rows else None

    async def add_reaction(self, message_id: str, user_id: str, emoji: str) -> Reaction:
        rows = await self._http.insert(Table.MESSAGE_REACTIONS, {
            "message_id": message_id, "user_id": user_id, "emoji": emoji,
        })
        if not rows:
            raise BackendError("Reaction was not stored", code="empty_response")
        return Reaction.model_validate(rows[0])

    async def remove_reaction(self, reaction_id: str) -> None:
        await self._http.delete(Table.MESSAGE_REACTIONS, {"id": eq(reaction_id)})

    async def upload_media(self, file_path: str, message_type: MessageType) -> MediaRef:
        """Upload a file to the chat media bucket; the public URL becomes the message's media reference."""
        path = Path(file_path)
        data = path.read_bytes()
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        url = await self._http.upload(MEDIA_BUCKET, media_path(message_type, path.name), data, content_type)
        return MediaRef(url=url, type=content_type, size=len(data))
