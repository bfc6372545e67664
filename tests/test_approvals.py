"""Tests for the pending-user approval queue."""

import asyncio

import pytest

from clubdesk.approvals import UserApprovalQueue
from clubdesk.models.events import Table
from clubdesk.models.permission import Role
from clubdesk.notify import Level
from clubdesk.transport.realtime import RealtimeManager

from conftest import FakePermissionsAPI


class FakeHttp:
    def __init__(self, pending):
        self.pending = list(pending)
        self.updates = []
        self.fail_update = None
        self.gate = None

    async def rpc(self, function, args=None):
        assert function == "rpc_get_pending_users"
        return [p for p in self.pending if p["approval_status"] == "pending"]

    async def update(self, table, values, filters):
        self.updates.append((table, values, filters))
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_update is not None:
            raise self.fail_update
        user_id = filters["id"].removeprefix("eq.")
        for p in self.pending:
            if p["id"] == user_id:
                p.update(values)
        return [values]


def pending_users():
    return [
        {"id": "u1", "email": "ana@club.test", "full_name": "Ana", "approval_status": "pending"},
        {"id": "u2", "email": "ben@club.test", "full_name": "Ben", "approval_status": "pending"},
    ]


@pytest.mark.asyncio
async def test_refresh_lists_pending(notifier):
    queue = UserApprovalQueue(FakeHttp(pending_users()), notifier, FakePermissionsAPI())
    assert await queue.refresh()
    assert [p.full_name for p in queue.pending] == ["Ana", "Ben"]


@pytest.mark.asyncio
async def test_approve_sets_status_and_assigns_player(notifier):
    http = FakeHttp(pending_users())
    perms = FakePermissionsAPI()
    queue = UserApprovalQueue(http, notifier, perms)
    await queue.refresh()

    assert await queue.approve("u1")
    assert http.updates == [(Table.PROFILES, {"approval_status": "approved"}, {"id": "eq.u1"})]
    assert perms.calls == [("assign_role", "u1", Role.PLAYER)]
    assert [p.id for p in queue.pending] == ["u2"]
    assert notifier.last.level == Level.SUCCESS


@pytest.mark.asyncio
async def test_approval_stands_when_role_assignment_fails(notifier, backend_error):
    http = FakeHttp(pending_users())
    perms = FakePermissionsAPI()
    perms.fail = backend_error
    queue = UserApprovalQueue(http, notifier, perms)
    await queue.refresh()

    assert await queue.approve("u1")
    assert http.pending[0]["approval_status"] == "approved"
    assert notifier.last.level == Level.WARNING
    assert backend_error.message in notifier.last.message


@pytest.mark.asyncio
async def test_failed_approval_keeps_user_pending(notifier, backend_error):
    http = FakeHttp(pending_users())
    http.fail_update = backend_error
    perms = FakePermissionsAPI()
    queue = UserApprovalQueue(http, notifier, perms)
    await queue.refresh()

    assert not await queue.approve("u1")
    assert perms.calls == []
    assert len(queue.pending) == 2
    assert notifier.last.level == Level.ERROR
    assert not queue.processing("u1")


@pytest.mark.asyncio
async def test_reject_with_reason(notifier):
    http = FakeHttp(pending_users())
    queue = UserApprovalQueue(http, notifier, FakePermissionsAPI())
    await queue.refresh()

    assert await queue.reject("u2", " incomplete profile ")
    assert http.updates == [(
        Table.PROFILES, {"approval_status": "rejected", "rejection_reason": "incomplete profile"}, {"id": "eq.u2"},
    )]
    assert [p.id for p in queue.pending] == ["u1"]


@pytest.mark.asyncio
async def test_double_submit_is_ignored():
    http = FakeHttp(pending_users())
    http.gate = asyncio.Event()
    queue = UserApprovalQueue(http, permissions=FakePermissionsAPI())
    await queue.refresh()

    first = asyncio.create_task(queue.approve("u1"))
    await asyncio.sleep(0)
    assert queue.processing("u1")
    assert not await queue.reject("u1", "changed my mind")
    http.gate.set()
    assert await first
    assert len(http.updates) == 1


@pytest.mark.asyncio
async def test_watch_refreshes_on_profile_changes():
    http = FakeHttp(pending_users())
    realtime = RealtimeManager("http://localhost:54321", "token")
    queue = UserApprovalQueue(http, permissions=FakePermissionsAPI())
    await queue.watch(realtime)
    assert queue.pending == []

    http.pending.append({"id": "u3", "full_name": "Cy", "approval_status": "pending"})
    await realtime.dispatch({
        "type": "INSERT", "table": Table.PROFILES, "schema": "public",
        "record": {"id": "u3", "approval_status": "pending"},
    })
    assert [p.id for p in queue.pending] == ["u1", "u2", "u3"]

    http.pending[0]["approval_status"] = "approved"
    await realtime.dispatch({
        "type": "UPDATE", "table": Table.PROFILES, "schema": "public",
        "record": {"id": "u1", "approval_status": "approved"},
    })
    assert [p.id for p in queue.pending] == ["u2", "u3"]

    await queue.unwatch()
    assert realtime.subscriptions == []
