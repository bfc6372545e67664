"""
Roles and permissions.

Effective permissions come from two places: the default set of every active
role the user holds, and direct per-user grant records. Direct grants win
over role defaults and are the only ones that can be toggled off here; a
role-derived permission goes away only when the role is removed.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, Union

from clubdesk.errors import AccessDeniedError, ClubDeskError
from clubdesk.inflight import InFlight
from clubdesk.models.events import Table
from clubdesk.models.permission import (
    EffectivePermission,
    Permission,
    PermissionGrant,
    PermissionName,
    PermissionSource,
    Role,
    RoleAssignment,
    RoleTemplate,
)
from clubdesk.notify import Notifier
from clubdesk.transport.http import HttpClient, eq

DEFAULT_REVOKE_REASON = "Revoked by administrator"

ROLE_DEFAULT_PERMISSIONS: dict[Role, frozenset[PermissionName]] = {
    Role.SUPER_ADMIN: frozenset(PermissionName),
    Role.STAFF: frozenset({PermissionName.MANAGE_ATTENDANCE}),
    Role.COACH: frozenset({PermissionName.MANAGE_ATTENDANCE, PermissionName.VIEW_REPORTS}),
    Role.MEDICAL: frozenset({PermissionName.MANAGE_MEDICAL, PermissionName.VIEW_REPORTS}),
    Role.PLAYER: frozenset(),
    Role.PARENT: frozenset(),
    Role.PARTNER: frozenset(),
}


def role_default_permissions(role: Role) -> frozenset[PermissionName]:
    return ROLE_DEFAULT_PERMISSIONS[role]


def _name(permission: Union[str, PermissionName, Permission]) -> str:
    if isinstance(permission, Permission):
        return permission.name
    if isinstance(permission, PermissionName):
        return permission.value
    return permission


def _grant_order(grant: PermissionGrant) -> datetime:
    ts = grant.changed_at or datetime.min.replace(tzinfo=timezone.utc)
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def resolve_effective_permissions(
    known: Iterable[Union[str, PermissionName, Permission]],
    roles: Iterable[RoleAssignment],
    grants: Iterable[PermissionGrant],
) -> dict[str, EffectivePermission]:
    """Compute each known permission's effective state and where it comes from.

    1. every known permission starts as ``none``
    2. each active role marks its default set as ``role``
    3. grant records, oldest first: an active one sets ``direct`` with its
       timestamp and reason, an inactive (revoked) one falls back to the
       role-derived state

    Permissions outside ``known`` are ignored.
    """
    states = {_name(p): EffectivePermission(name=_name(p)) for p in known}

    role_derived: set[str] = set()
    for assignment in roles:
        if not assignment.is_active:
            continue
        role_derived.update(p.value for p in role_default_permissions(assignment.role))

    def role_state(name: str) -> EffectivePermission:
        if name in role_derived:
            return EffectivePermission(name=name, granted=True, source=PermissionSource.ROLE)
        return EffectivePermission(name=name)

    for name in states:
        states[name] = role_state(name)

    for grant in sorted(grants, key=_grant_order):
        name = grant.permission_name
        if name not in states:
            continue
        if grant.is_active:
            states[name] = EffectivePermission(
                name=name, granted=True, source=PermissionSource.DIRECT,
                granted_at=grant.granted_at, reason=grant.reason,
            )
        else:
            states[name] = role_state(name)
    return states


class PermissionsAPI:
    """Role and permission RPCs plus the catalog reads behind them."""

    def __init__(self, http: HttpClient):
        self._http = http

    async def list_permissions(self) -> list[Permission]:
        rows = await self._http.select(Table.PERMISSIONS, order="category.asc,name.asc")
        return [Permission.model_validate(r) for r in rows]

    async def user_roles(self, user_id: str, active_only: bool = True) -> list[RoleAssignment]:
        filters = {"user_id": eq(user_id)}
        if active_only:
            filters["is_active"] = eq(True)
        rows = await self._http.select(Table.USER_ROLES, "user_id,role,is_active,created_at,updated_at", filters)
        return [RoleAssignment.model_validate(r) for r in rows]

    async def user_grants(self, user_id: str) -> list[PermissionGrant]:
        """Direct grant records, revoked ones included so revocations can be replayed."""
        rows = await self._http.select(
            Table.USER_PERMISSIONS,
            "user_id,is_active,granted_at,granted_by,revoked_at,reason,permissions(name,description)",
            filters={"user_id": eq(user_id)},
        )
        return [PermissionGrant.model_validate(r) for r in rows]

    async def role_templates(self) -> list[RoleTemplate]:
        rows = await self._http.select(
            Table.ROLE_TEMPLATES, "*,template_permissions(permission:permissions(name))", order="name.asc",
        )
        templates = []
        for row in rows:
            names = [
                (tp.get("permission") or {}).get("name")
                for tp in row.pop("template_permissions", None) or []
            ]
            templates.append(RoleTemplate.model_validate({**row, "permissions": [n for n in names if n]}))
        return templates

    async def assign_role(self, user_id: str, role: Role) -> Any:
        return await self._http.rpc("assign_user_role", {"target_user_id": user_id, "target_role": role.value})

    async def remove_role(self, user_id: str, role: Role) -> Any:
        return await self._http.rpc("remove_user_role", {"target_user_id": user_id, "target_role": role.value})

    async def grant_permission(self, user_id: str, permission: str, reason: str) -> Any:
        return await self._http.rpc("assign_user_permission", {
            "target_user_id": user_id, "permission_name": permission, "reason": reason,
        })

    async def revoke_permission(self, user_id: str, permission: str, reason: str = DEFAULT_REVOKE_REASON) -> Any:
        return await self._http.rpc("remove_user_permission", {
            "target_user_id": user_id, "permission_name": permission, "reason": reason,
        })

    async def apply_role_template(self, user_id: str, template_id: str) -> Any:
        return await self._http.rpc("apply_role_template", {"target_user_id": user_id, "template_id": template_id})

    async def has_permission(self, user_id: str, permission: str) -> bool:
        return bool(await self._http.rpc("user_has_permission", {
            "_user_id": user_id, "_permission_name": permission,
        }))

    async def current_user_has_role(self, role: Role) -> bool:
        return bool(await self._http.rpc("current_user_has_role", {"check_role": role.value}))

    async def require_role(self, role: Role) -> None:
        """Raise AccessDeniedError unless the signed-in user holds ``role``."""
        if not await self.current_user_has_role(role):
            raise AccessDeniedError(required=role.value)


class PermissionManager:
    """Per-user permission screen: effective states, toggles, role and template actions.

    Every action reloads the view on success. Backend failures become error
    notifications with the backend's text; refused inputs become warnings
    and no call is made.
    """

    def __init__(self, api: PermissionsAPI, user_id: str, notifier: Optional[Notifier] = None):
        self._api = api
        self.user_id = user_id
        self._notifier = notifier or Notifier()
        self._inflight = InFlight()
        self.catalog: list[Permission] = []
        self.roles: list[RoleAssignment] = []
        self.states: dict[str, EffectivePermission] = {}
        self.loading = False

    @property
    def busy(self) -> bool:
        return len(self._inflight) > 0

    @property
    def active_roles(self) -> list[Role]:
        return [r.role for r in self.roles if r.is_active]

    def by_category(self) -> dict[str, list[Permission]]:
        grouped: dict[str, list[Permission]] = {}
        for permission in self.catalog:
            grouped.setdefault(permission.category or "general", []).append(permission)
        return grouped

    def state(self, permission: Union[str, PermissionName]) -> EffectivePermission:
        name = _name(permission)
        return self.states.get(name) or EffectivePermission(name=name)

    def can_toggle(self, permission: Union[str, PermissionName]) -> bool:
        state = self.state(permission)
        return not self.busy and (state.revocable or not state.granted)

    async def load(self) -> bool:
        self.loading = True
        try:
            self.catalog = await self._api.list_permissions()
            self.roles = await self._api.user_roles(self.user_id)
            grants = await self._api.user_grants(self.user_id)
        except ClubDeskError as e:
            self._notifier.error("Failed to load permissions", e.message)
            return False
        finally:
            self.loading = False
        self.states = resolve_effective_permissions(self.catalog, self.roles, grants)
        return True

    async def _run(self, key: tuple, action: Callable[[], Awaitable[Any]], success: str) -> bool:
        with self._inflight.hold(key) as claimed:
            if not claimed:
                return False
            try:
                await action()
            except ClubDeskError as e:
                self._notifier.error("Permission change failed", e.message)
                return False
        self._notifier.success(success)
        await self.load()
        return True

    async def toggle(self, permission: Union[str, PermissionName], grant: bool, reason: str = "") -> bool:
        """Grant or revoke a direct permission.

        A grant needs a non-empty reason. Revoking a role-derived permission is
        refused; remove the role instead.
        """
        name = _name(permission)
        reason = (reason or "").strip()
        if grant and not reason:
            self._notifier.warning("Reason required", "Please provide a reason for granting this permission")
            return False
        if not grant and not self.state(name).granted:
            self._notifier.info("Not granted", f"{name} is not granted to this user")
            return False
        if not grant and not self.state(name).revocable:
            self._notifier.warning(
                "Granted by role", f"{name} comes from the user's role. Remove the role to revoke it.",
            )
            return False
        if grant:
            return await self._run(
                ("permission", name), lambda: self._api.grant_permission(self.user_id, name, reason),
                "Permission granted successfully",
            )
        return await self._run(
            ("permission", name),
            lambda: self._api.revoke_permission(self.user_id, name, reason or DEFAULT_REVOKE_REASON),
            "Permission revoked successfully",
        )

    async def assign_role(self, role: Role) -> bool:
        if role in self.active_roles:
            return True
        return await self._run(("role", role), lambda: self._api.assign_role(self.user_id, role), f"Role {role.value} assigned")

    async def remove_role(self, role: Role) -> bool:
        return await self._run(("role", role), lambda: self._api.remove_role(self.user_id, role), f"Role {role.value} removed")

    async def apply_template(self, template: RoleTemplate) -> bool:
        return await self._run(
            ("template", template.id), lambda: self._api.apply_role_template(self.user_id, template.id),
            f"{template.name} template applied",
        )
