"""Shared fakes for the backend API classes."""

import asyncio
import itertools
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest

from clubdesk.errors import AccessDeniedError, BackendError, ConflictError
from clubdesk.models.message import EditHistoryEntry, MediaRef, Message, MessageType, Reaction
from clubdesk.models.permission import (
    Permission,
    PermissionGrant,
    PermissionName,
    Role,
    RoleAssignment,
    RoleTemplate,
)
from clubdesk.notify import Level, Notifier

CHAT_ID = "chat-1"
ME = "user-me"
OTHER = "user-other"
T0 = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_message(n: int, sender: str = OTHER, content: Optional[str] = None, **fields: Any) -> Message:
    return Message(
        id=f"m{n}",
        chat_id=CHAT_ID,
        sender_id=sender,
        content=content if content is not None else f"message {n}",
        created_at=T0 + timedelta(seconds=n),
        updated_at=T0 + timedelta(seconds=n),
        **fields,
    )


class FakeMessagesAPI:
    """In-memory stand-in for MessagesAPI.

    ``gate`` holds inserts and ``fetch_gate`` holds page fetches until set;
    ``fail_insert`` makes inserts raise it.
    """

    def __init__(self, history: Optional[list[Message]] = None):
        self.rows: dict[str, Message] = {m.id: m for m in history or []}
        self.inserts: list[dict[str, Any]] = []
        self.fetches: list[tuple[int, int]] = []
        self.deleted: list[str] = []
        self.recalled: list[str] = []
        self.gate: Optional[asyncio.Event] = None
        self.fetch_gate: Optional[asyncio.Event] = None
        self.fail_insert: Optional[Exception] = None
        self.fail_delete: Optional[Exception] = None
        self.fail_edit: Optional[Exception] = None
        self._ids = itertools.count(1)

    def _newest_first(self) -> list[Message]:
        return sorted(self.rows.values(), key=lambda m: m.created_at, reverse=True)

    async def fetch_page(self, chat_id: str, offset: int = 0, limit: int = 50) -> list[Message]:
        self.fetches.append((offset, limit))
        if self.fetch_gate is not None:
            await self.fetch_gate.wait()
        return [m for m in self._newest_first() if m.chat_id == chat_id][offset:offset + limit]

    async def insert(self, chat_id, sender_id, content, message_type=MessageType.TEXT,
                     media: Optional[MediaRef] = None, client_id=None) -> Optional[Message]:
        self.inserts.append({"content": content, "client_id": client_id, "message_type": message_type})
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_insert is not None:
            raise self.fail_insert
        n = next(self._ids)
        msg = Message(
            id=f"srv-{n}", chat_id=chat_id, sender_id=sender_id, content=content,
            message_type=message_type, media_url=media.url if media else None,
            created_at=datetime.now(timezone.utc) + timedelta(microseconds=n), client_id=client_id,
        )
        self.rows[msg.id] = msg
        return msg

    async def edit(self, message_id: str, new_content: str) -> Message:
        if self.fail_edit is not None:
            raise self.fail_edit
        current = self.rows[message_id]
        now = datetime.now(timezone.utc)
        updated = current.model_copy(update={
            "content": new_content,
            "edit_history": [*current.edit_history, EditHistoryEntry(content=current.content, edited_at=now)],
            "is_edited": True,
            "edited_at": now,
            "updated_at": now,
        })
        self.rows[message_id] = updated
        return updated

    async def delete(self, message_id: str) -> None:
        if self.fail_delete is not None:
            raise self.fail_delete
        self.deleted.append(message_id)
        self.rows.pop(message_id, None)

    async def recall(self, message_id: str) -> Any:
        self.recalled.append(message_id)
        return {"success": True}

    async def set_archived(self, message_id: str, archived: bool = True) -> Optional[Message]:
        return self.rows[message_id].model_copy(update={"is_archived": archived})

    async def add_reaction(self, message_id: str, user_id: str, emoji: str) -> Reaction:
        return Reaction(id=f"r{next(self._ids)}", message_id=message_id, user_id=user_id, emoji=emoji)

    async def remove_reaction(self, reaction_id: str) -> None:
        return None

    async def upload_media(self, file_path: str, message_type: MessageType) -> MediaRef:
        return MediaRef(url=f"https://cdn.test/{file_path}", type="image/png", size=3)


class FakePermissionsAPI:
    def __init__(self, roles: Optional[list[Role]] = None, grants: Optional[list[PermissionGrant]] = None):
        self.catalog = [
            Permission(name=p.value, category="medical" if "medical" in p.value else "operations")
            for p in PermissionName
        ]
        self.roles = [RoleAssignment(user_id=ME, role=r) for r in roles or []]
        self.grants = list(grants or [])
        self.calls: list[tuple] = []
        self.fail: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None
        self.is_admin = True

    async def list_permissions(self):
        return list(self.catalog)

    async def user_roles(self, user_id, active_only=True):
        return list(self.roles)

    async def user_grants(self, user_id):
        return list(self.grants)

    async def _call(self, *call):
        self.calls.append(call)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail is not None:
            raise self.fail
        return {"success": True}

    async def grant_permission(self, user_id, permission, reason):
        await self._call("grant", user_id, permission, reason)
        self.grants.append(PermissionGrant(
            permission_name=permission, reason=reason, granted_at=datetime.now(timezone.utc),
        ))

    async def revoke_permission(self, user_id, permission, reason="Revoked by administrator"):
        await self._call("revoke", user_id, permission, reason)
        self.grants.append(PermissionGrant(
            permission_name=permission, is_active=False, revoked_at=datetime.now(timezone.utc),
        ))

    async def assign_role(self, user_id, role):
        await self._call("assign_role", user_id, role)
        self.roles.append(RoleAssignment(user_id=user_id, role=role))

    async def remove_role(self, user_id, role):
        await self._call("remove_role", user_id, role)
        self.roles = [r for r in self.roles if r.role != role]

    async def apply_role_template(self, user_id, template_id):
        await self._call("apply_template", user_id, template_id)

    async def current_user_has_role(self, role):
        return self.is_admin

    async def require_role(self, role):
        if not await self.current_user_has_role(role):
            raise AccessDeniedError(required=role.value)

    async def role_templates(self):
        return [RoleTemplate(id="t1", name="Head coach", role=Role.COACH, permissions=["manage_training"])]


def levels(notifier: Notifier) -> list[Level]:
    return [n.level for n in notifier.history]


@pytest.fixture
def notifier() -> Notifier:
    return Notifier()


@pytest.fixture
def backend_error() -> BackendError:
    return BackendError("new row violates row-level security policy", code="42501", status=403)


@pytest.fixture
def conflict_error() -> ConflictError:
    return ConflictError("Message was changed by someone else. Reload and try again.")
