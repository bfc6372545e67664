"""
Pending-user approvals.

New sign-ups land in ``profiles`` with approval_status ``pending``. An
administrator approves (the user then gets the ``player`` role) or rejects
with a reason. The list refreshes itself from realtime profile changes.
"""

import logging
from typing import Optional

from clubdesk.errors import ClubDeskError
from clubdesk.inflight import InFlight
from clubdesk.models.events import ChangeType, Table
from clubdesk.models.permission import Role
from clubdesk.models.profile import ApprovalStatus, Profile
from clubdesk.notify import Notifier
from clubdesk.permissions import PermissionsAPI
from clubdesk.transport.changes import ChangeEvent
from clubdesk.transport.http import HttpClient, eq
from clubdesk.transport.realtime import RealtimeManager, Subscription

logger = logging.getLogger(__name__)

DEFAULT_ROLE = Role.PLAYER


class UserApprovalQueue:
    def __init__(self, http: HttpClient, notifier: Optional[Notifier] = None,
                 permissions: Optional[PermissionsAPI] = None):
        self._http = http
        self._permissions = permissions or PermissionsAPI(http)
        self._notifier = notifier or Notifier()
        self._inflight = InFlight()
        self._subscriptions: list[Subscription] = []
        self.pending: list[Profile] = []
        self.loading = False

    def processing(self, user_id: str) -> bool:
        """Whether an approve/reject for ``user_id`` is in flight."""
        return user_id in self._inflight

    async def fetch_pending(self) -> list[Profile]:
        rows = await self._http.rpc("rpc_get_pending_users") or []
        return [Profile.model_validate(r) for r in rows]

    async def refresh(self) -> bool:
        self.loading = True
        try:
            self.pending = await self.fetch_pending()
        except ClubDeskError as e:
            self._notifier.error("Failed to load pending users", e.message)
            return False
        finally:
            self.loading = False
        return True

    async def _set_status(self, user_id: str, status: ApprovalStatus, reason: Optional[str] = None) -> None:
        values = {"approval_status": status.value}
        if reason is not None:
            values["rejection_reason"] = reason
        await self._http.update(Table.PROFILES, values, {"id": eq(user_id)})

    async def approve(self, user_id: str) -> bool:
        """Approve a pending user and give them the default role.

        A failed role assignment does not undo the approval; it is reported
        as a warning so an administrator can assign the role by hand.
        """
        with self._inflight.hold(user_id) as claimed:
            if not claimed:
                return False
            try:
                await self._set_status(user_id, ApprovalStatus.APPROVED)
            except ClubDeskError as e:
                self._notifier.error("Approval failed", e.message)
                return False
            try:
                await self._permissions.assign_role(user_id, DEFAULT_ROLE)
            except ClubDeskError as e:
                logger.warning("Role assignment after approval failed for %s: %s", user_id, e.message)
                self._notifier.warning(
                    "User approved", f"Approved, but assigning the {DEFAULT_ROLE.value} role failed: {e.message}",
                )
            else:
                self._notifier.success("User approved", "The user can now sign in.")
        self._drop(user_id)
        await self.refresh()
        return True

    async def reject(self, user_id: str, reason: str = "") -> bool:
        with self._inflight.hold(user_id) as claimed:
            if not claimed:
                return False
            try:
                await self._set_status(user_id, ApprovalStatus.REJECTED, reason.strip() or None)
            except ClubDeskError as e:
                self._notifier.error("Rejection failed", e.message)
                return False
        self._notifier.success("User rejected")
        self._drop(user_id)
        await self.refresh()
        return True

    def _drop(self, user_id: str) -> None:
        self.pending = [p for p in self.pending if p.id != user_id]

    async def _on_change(self, _event: ChangeEvent) -> None:
        await self.refresh()

    async def watch(self, realtime: RealtimeManager) -> None:
        self._subscriptions.append(await realtime.subscribe(
            Table.PROFILES, self._on_change, ChangeType.INSERT, f"approval_status=eq.{ApprovalStatus.PENDING.value}",
        ))
        self._subscriptions.append(await realtime.subscribe(Table.PROFILES, self._on_change, ChangeType.UPDATE))

    async def unwatch(self) -> None:
        for sub in self._subscriptions:
            await sub.unsubscribe()
        self._subscriptions.clear()
