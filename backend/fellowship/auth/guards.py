# backend/fellowship/auth/guards.py
"""
Request-facing authorization checks.

Every guard takes the principal explicitly (None when the request carries no
usable session) and either returns it or raises. A missing principal is
always Unauthenticated, never Forbidden.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence, Union

from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.auth.permissions import (
    GroupPermissionLike,
    GroupRoleLike,
    MaybePrincipal,
    PermissionLike,
    Principal,
    can_manage_group,
    has_any_fellowship_permission,
    has_fellowship_permission,
    has_group_permission,
    is_admin,
    is_pastor,
)
from fellowship.auth.policies import Action, ResourceType, can_perform_action
from fellowship.core.errors import Forbidden, Unauthenticated
from fellowship.crud.groups import get_user_group_role


@dataclass(frozen=True)
class GroupAccess:
    principal: Principal
    group_role: Optional[str]


def require_authenticated(principal: MaybePrincipal) -> Principal:
    if principal is None:
        raise Unauthenticated()
    return principal


def require_fellowship_permission(principal: MaybePrincipal, permission: PermissionLike) -> Principal:
    principal = require_authenticated(principal)
    if not has_fellowship_permission(principal, permission):
        raise Forbidden()
    return principal


def require_any_fellowship_permission(
    principal: MaybePrincipal,
    permissions: Sequence[PermissionLike],
) -> Principal:
    principal = require_authenticated(principal)
    if not has_any_fellowship_permission(principal, permissions):
        raise Forbidden()
    return principal


def require_admin(principal: MaybePrincipal) -> Principal:
    principal = require_authenticated(principal)
    if not is_admin(principal):
        raise Forbidden("Forbidden - Admin access required")
    return principal


async def require_group_management(
    db: AsyncSession,
    principal: MaybePrincipal,
    group_id: int,
) -> GroupAccess:
    principal = require_authenticated(principal)
    group_role = await get_user_group_role(db, principal.id, group_id)
    if not can_manage_group(principal, group_role):
        raise Forbidden("Forbidden - Group management access required")
    return GroupAccess(principal=principal, group_role=group_role)


async def require_group_permission(
    db: AsyncSession,
    principal: MaybePrincipal,
    group_id: int,
    permission: GroupPermissionLike,
) -> GroupAccess:
    principal = require_authenticated(principal)
    group_role = await get_user_group_role(db, principal.id, group_id)
    # non-members never pass, whatever their fellowship roles
    if group_role is None or not has_group_permission(group_role, permission):
        raise Forbidden()
    return GroupAccess(principal=principal, group_role=group_role)


def require_owner_or_admin(principal: MaybePrincipal, resource_owner_id: Optional[str]) -> Principal:
    principal = require_authenticated(principal)
    if not is_owner_or_admin_check(principal, resource_owner_id):
        raise Forbidden("Forbidden - You can only modify your own resources")
    return principal


def require_action(
    principal: MaybePrincipal,
    action: Union[Action, str],
    resource_type: Union[ResourceType, str],
    *,
    is_owner: bool = False,
    group_role: GroupRoleLike = None,
) -> Principal:
    principal = require_authenticated(principal)
    if not can_perform_action(principal, action, resource_type, is_owner=is_owner, group_role=group_role):
        raise Forbidden()
    return principal


def is_owner_or_admin_check(principal: MaybePrincipal, owner_id: Optional[str]) -> bool:
    if principal is None:
        return False
    if owner_id is not None and principal.id == owner_id:
        return True
    return is_admin(principal)


def is_owner_or_admin_or_pastor_check(principal: MaybePrincipal, owner_id: Optional[str]) -> bool:
    return is_owner_or_admin_check(principal, owner_id) or is_pastor(principal)
