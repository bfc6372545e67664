"""Basic unit tests for the clubdesk package."""

from clubdesk import (
    AccessDeniedError,
    AsyncClubDesk,
    AuthError,
    BackendError,
    ClubDesk,
    ClubDeskError,
    ConflictError,
    ConnectionError,
    ValidationError,
    __version__,
)
from clubdesk.inflight import InFlight
from clubdesk.models.events import ChangeType, RealtimeEvent, Table
from clubdesk.models.message import Message
from clubdesk.models.permission import PermissionGrant
from clubdesk.notify import Level, Notifier


def test_version():
    assert __version__ == "0.1.0"


def test_public_exports():
    assert ClubDesk is not None
    assert AsyncClubDesk is not None


def test_error_hierarchy():
    for cls in (AuthError, BackendError, ConnectionError, ValidationError, ConflictError, AccessDeniedError):
        assert issubclass(cls, ClubDeskError)


def test_error_attributes():
    err = ClubDeskError(code="test_code", message="something broke")
    assert err.code == "test_code"
    assert str(err) == "something broke"
    assert err.details is None

    backend = BackendError("duplicate key value", code="23505", status=409)
    assert backend.code == "23505"
    assert backend.status == 409

    invalid = ValidationError("Reason is required", field="reason")
    assert invalid.code == "validation_error"
    assert invalid.details == {"field": "reason"}

    denied = AccessDeniedError(required="super_admin")
    assert denied.code == "access_denied"
    assert denied.required == "super_admin"


def test_event_constants():
    assert ChangeType.ALL == "*"
    assert Table.MESSAGES == "messages"
    assert RealtimeEvent.POSTGRES_CHANGES == "postgres_changes"


def test_message_row_nulls():
    msg = Message.from_row({
        "id": "m1", "chat_id": "c1", "sender_id": "u1", "created_at": "2024-05-01T12:00:00Z",
        "is_edited": None, "is_recalled": None, "edit_history": None,
    })
    assert msg.is_edited is False
    assert msg.is_recalled is False
    assert msg.edit_history == []
    assert not msg.is_local


def test_grant_reads_embedded_permission_name():
    grant = PermissionGrant.model_validate({"is_active": True, "permissions": {"name": "manage_stats"}})
    assert grant.permission_name == "manage_stats"


def test_inflight_hold():
    inflight = InFlight()
    with inflight.hold(("approve", "u1")) as first:
        assert first
        with inflight.hold(("approve", "u1")) as second:
            assert not second
        assert ("approve", "u1") in inflight
    assert len(inflight) == 0


def test_notifier_keeps_recent_history():
    seen = []
    notifier = Notifier(listener=seen.append, keep=2)
    notifier.info("one")
    notifier.warning("two")
    notifier.error("three", "details")
    assert [n.title for n in notifier.history] == ["two", "three"]
    assert notifier.last.level == Level.ERROR
    assert len(seen) == 3
