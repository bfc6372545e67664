"""
Realtime change-feed event names and change types.
"""

from enum import Enum


class ChangeType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    ALL = "*"


class Table:
    MESSAGES = "messages"
    MESSAGE_REACTIONS = "message_reactions"
    CHATS = "chats"
    CHAT_PARTICIPANTS = "chat_participants"
    PROFILES = "profiles"
    USER_ROLES = "user_roles"
    USER_PERMISSIONS = "user_permissions"
    PERMISSIONS = "permissions"
    ROLE_TEMPLATES = "role_templates"
    EMPLOYEES = "employees"
    STAFF_DEPARTMENTS = "staff_departments"
    HEALTH_WELLNESS = "health_wellness"
    DAILY_HEALTH_CHECKINS = "daily_health_checkins"


class RealtimeEvent:
    """Socket event names on the realtime connection."""
    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"
    POSTGRES_CHANGES = "postgres_changes"
    READY = "ready"
