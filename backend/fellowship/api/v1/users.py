# backend/fellowship/api/v1/users.py
from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.api.deps.permissions import permission_required
from fellowship.api.deps.session import get_principal
from fellowship.auth.guards import require_action
from fellowship.auth.permissions import (
    FELLOWSHIP_ROLES,
    FellowshipPermission,
    FellowshipRole,
    Principal,
    coerce_enum,
)
from fellowship.auth.policies import Action, ResourceType
from fellowship.core.errors import NotFound
from fellowship.crud import roles as roles_crud, users as users_crud
from fellowship.db.session import get_db
from fellowship.schemas.auth import RoleOut
from fellowship.schemas.users import AssignRoleRequest, RoleWithPermissions, UserWithRoles

logger = logging.getLogger(__name__)

admin_router = APIRouter(prefix="/admin", tags=["admin"])
router = APIRouter(prefix="/users", tags=["users"])


def _role_with_bundle(role) -> RoleWithPermissions:
    key = coerce_enum(FellowshipRole, role.name)
    if key is None:
        return RoleWithPermissions(id=role.id, name=role.name, description=role.description)
    definition = FELLOWSHIP_ROLES[key]
    return RoleWithPermissions(
        id=role.id,
        name=role.name,
        display_name=definition.name,
        description=role.description,
        permissions=[p.value for p in FellowshipPermission if p in definition.permissions],
    )


# =========================================================
# ADMIN (roles + users)
# =========================================================
@admin_router.get("/users", response_model=List[UserWithRoles])
async def list_users(
    q: Optional[str] = Query(default=None, max_length=100),
    db: AsyncSession = Depends(get_db),
    _principal: Principal = Depends(permission_required(FellowshipPermission.VIEW_USERS)),
):
    """
    Users with their role assignments. `q` filters by name or email.
    """
    users = await users_crud.search_users(db, q, limit=100) if q else await users_crud.list_users(db)
    roles_by_user = await roles_crud.list_roles_by_user(db)

    return [
        UserWithRoles(
            id=u.id,
            first_name=u.first_name,
            last_name=u.last_name,
            email=u.email,
            status=u.status,
            created_at=u.created_at,
            roles=[RoleOut(id=r.id, name=r.name) for r in roles_by_user.get(u.id, [])],
        )
        for u in users
    ]


@admin_router.get("/roles", response_model=List[RoleWithPermissions])
async def list_roles(
    db: AsyncSession = Depends(get_db),
    _principal: Principal = Depends(permission_required(FellowshipPermission.VIEW_USERS)),
):
    roles = await roles_crud.list_roles(db)
    return [_role_with_bundle(r) for r in roles]


@admin_router.post("/users/{user_id}/roles", response_model=RoleOut, status_code=status.HTTP_201_CREATED)
async def assign_role(
    user_id: str,
    payload: AssignRoleRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(permission_required(FellowshipPermission.ASSIGN_ROLES)),
):
    if await users_crud.get_user(db, user_id) is None:
        raise NotFound("User not found")

    role = await roles_crud.assign_role(db, user_id, payload.role_id)
    logger.info("User %s granted role %s to %s", principal.id, role.name, user_id)
    return RoleOut(id=role.id, name=role.name)


@admin_router.delete("/users/{user_id}/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_role(
    user_id: str,
    role_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(permission_required(FellowshipPermission.ASSIGN_ROLES)),
):
    await roles_crud.remove_role(db, user_id, role_id)
    logger.info("User %s removed role %s from %s", principal.id, role_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =========================================================
# USER DELETE (owner or manage_users)
# =========================================================
@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_principal),
):
    principal = require_action(
        principal,
        Action.DELETE,
        ResourceType.USER,
        is_owner=principal is not None and principal.id == user_id,
    )

    if await users_crud.get_user(db, user_id) is None:
        raise NotFound("User not found")

    await users_crud.delete_user(db, user_id)
    logger.info("User %s deleted by %s", user_id, principal.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
