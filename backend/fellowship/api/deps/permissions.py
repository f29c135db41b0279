from __future__ import annotations

from typing import Callable, Optional

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.api.deps.session import get_principal
from fellowship.auth.guards import (
    GroupAccess,
    require_admin,
    require_any_fellowship_permission,
    require_authenticated,
    require_fellowship_permission,
    require_group_management,
    require_group_permission,
)
from fellowship.auth.permissions import GroupPermissionLike, PermissionLike, Principal
from fellowship.db.session import get_db


def permission_required(*required: PermissionLike, any_of: bool = False) -> Callable:
    """
    Enforce fellowship permissions on a route.

    Args:
      required: one or more FellowshipPermission values
      any_of: True => any listed permission passes; False => all are required
    """
    required_list = list(required)

    async def _checker(principal: Optional[Principal] = Depends(get_principal)) -> Principal:
        if any_of:
            return require_any_fellowship_permission(principal, required_list)
        principal = require_authenticated(principal)
        for permission in required_list:
            require_fellowship_permission(principal, permission)
        return principal

    return _checker


async def admin_required(principal: Optional[Principal] = Depends(get_principal)) -> Principal:
    return require_admin(principal)


async def group_manager_required(
    group_id: int,
    principal: Optional[Principal] = Depends(get_principal),
    db: AsyncSession = Depends(get_db),
) -> GroupAccess:
    """Reads `group_id` from the path."""
    return await require_group_management(db, principal, group_id)


def group_permission_required(permission: GroupPermissionLike) -> Callable:
    async def _checker(
        group_id: int,
        principal: Optional[Principal] = Depends(get_principal),
        db: AsyncSession = Depends(get_db),
    ) -> GroupAccess:
        return await require_group_permission(db, principal, group_id, permission)

    return _checker
