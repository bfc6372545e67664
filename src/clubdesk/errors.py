"""
ClubDesk error types.

API classes raise these; the stateful view models catch ClubDeskError at
each call site and turn it into a notification.
"""

from typing import Any, Optional


class ClubDeskError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details


class AuthError(ClubDeskError):
    def __init__(self, message: str, code: str = "auth_error"):
        super().__init__(code, message)


class ConnectionError(ClubDeskError):
    def __init__(self, message: str):
        super().__init__("connection_error", message)


class BackendError(ClubDeskError):
    """The backend rejected a request. ``message`` is the backend's text, verbatim."""

    def __init__(self, message: str, code: str = "backend_error", status: Optional[int] = None,
                 details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details)
        self.status = status


class ValidationError(ClubDeskError):
    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__("validation_error", message, {"field": field} if field else None)
        self.field = field


class ConflictError(ClubDeskError):
    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__("conflict", message, details)


class AccessDeniedError(ClubDeskError):
    def __init__(self, message: str = "You do not have access to this area.", required: Optional[str] = None):
        super().__init__("access_denied", message, {"required": required} if required else None)
        self.required = required
