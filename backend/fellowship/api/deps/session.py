# backend/fellowship/api/deps/session.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.auth.permissions import Principal, RoleRef
from fellowship.core.errors import Unauthenticated
from fellowship.core.security import bearer_scheme, decode_access_token
from fellowship.db.session import get_db
from fellowship.models.role import Role, UserRole
from fellowship.models.user import User

logger = logging.getLogger(__name__)


async def load_principal(db: AsyncSession, user_id: str) -> Optional[Principal]:
    """
    One query: the user row outer-joined with its role assignments.
    Unknown or inactive users resolve to None.
    """
    stmt = (
        select(User.id, User.status, Role.id, Role.name)
        .outerjoin(UserRole, UserRole.user_id == User.id)
        .outerjoin(Role, Role.id == UserRole.role_id)
        .where(User.id == user_id)
    )
    rows = (await db.execute(stmt)).all()
    if not rows:
        return None

    _, status_, _, _ = rows[0]
    if status_ == "inactive":
        return None

    roles = [RoleRef(id=role_id, name=name) for _, _, role_id, name in rows if role_id is not None]
    return Principal.build(user_id, roles)


async def get_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[Principal]:
    """
    The session's principal, or None for anonymous / unusable sessions.
    Never raises for a bad token; guards decide what None means.
    """
    if credentials is None or not credentials.credentials:
        return None

    user_id = decode_access_token(credentials.credentials)
    if not user_id:
        return None

    principal = await load_principal(db, user_id)
    if principal is None:
        logger.info("Token subject %s has no active account", user_id)
    return principal


async def get_current_principal(principal: Optional[Principal] = Depends(get_principal)) -> Principal:
    if principal is None:
        raise Unauthenticated()
    return principal


async def get_current_user(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Dependency for endpoints that need the ORM row, not just identity.
    """
    user = await db.get(User, principal.id)
    if user is None:
        raise Unauthenticated()
    return user
