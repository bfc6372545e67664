"""
Change-event parsing and filter matching for the realtime feed.
"""

import uuid
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError

from clubdesk.models.events import ChangeType


class ChangeEvent(BaseModel):
    subscription: Optional[str] = None
    type: ChangeType
    table: str
    schema_name: str = Field(default="public", alias="schema")
    record: dict[str, Any] = Field(default_factory=dict)
    old_record: dict[str, Any] = Field(default_factory=dict)
    commit_timestamp: Optional[str] = None

    model_config = {"populate_by_name": True}

    @property
    def row(self) -> dict[str, Any]:
        """The row the event is about: the new record, or the old one for deletes."""
        return self.old_record if self.type == ChangeType.DELETE else self.record


def parse_filter(expr: Optional[str]) -> Optional[tuple[str, str]]:
    """Parse ``column=eq.value`` into ``(column, value)``. Only equality is supported."""
    if not expr:
        return None
    column, sep, rest = expr.partition("=")
    op, dot, value = rest.partition(".")
    if not sep or not dot or op != "eq" or not column:
        raise ValueError(f"Unsupported realtime filter: {expr!r}")
    return column, value


def _as_filter_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return "" if value is None else str(value)


def matches(event: ChangeEvent, table: str, change: ChangeType, filter_expr: Optional[str]) -> bool:
    if event.table != table:
        return False
    if change != ChangeType.ALL and event.type != change:
        return False
    parsed = parse_filter(filter_expr)
    if parsed is None:
        return True
    column, value = parsed
    return _as_filter_text(event.row.get(column)) == value


def build_subscription(table: str, change: ChangeType, filter_expr: Optional[str]) -> dict[str, Any]:
    """Build a subscribe request payload."""
    parse_filter(filter_expr)
    return {
        "id": str(uuid.uuid4()),
        "schema": "public",
        "table": table,
        "event": change.value,
        "filter": filter_expr,
    }


def parse_change(raw: dict[str, Any]) -> Optional[ChangeEvent]:
    """Parse a pushed change event. Returns None if invalid."""
    try:
        return ChangeEvent.model_validate(raw)
    except ValidationError:
        return None
