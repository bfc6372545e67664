"""
clubdesk — ClubDesk SDK for Python.

Team chat, roles and permissions, and club administration over a
REST + realtime backend.
"""

from clubdesk.client import AsyncClubDesk, ClubDesk
from clubdesk.auth import Auth
from clubdesk.chat import ChatView
from clubdesk.store import MessageStore
from clubdesk.window import MessageWindow, visible_range
from clubdesk.permissions import PermissionManager, PermissionsAPI, resolve_effective_permissions
from clubdesk.approvals import UserApprovalQueue
from clubdesk.notify import Notification, Notifier
from clubdesk.errors import (
    AccessDeniedError,
    AuthError,
    BackendError,
    ClubDeskError,
    ConflictError,
    ConnectionError,
    ValidationError,
)
from clubdesk.models.events import ChangeType, Table

__version__ = "0.1.0"
__all__ = [
    "ClubDesk",
    "AsyncClubDesk",
    "Auth",
    "ChatView",
    "MessageStore",
    "MessageWindow",
    "visible_range",
    "PermissionManager",
    "PermissionsAPI",
    "resolve_effective_permissions",
    "UserApprovalQueue",
    "Notification",
    "Notifier",
    "ClubDeskError",
    "AuthError",
    "BackendError",
    "ConnectionError",
    "ValidationError",
    "ConflictError",
    "AccessDeniedError",
    "ChangeType",
    "Table",
]
