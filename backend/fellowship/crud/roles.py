# backend/fellowship/crud/roles.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.auth.permissions import FELLOWSHIP_ROLES, FellowshipRole, RoleRef
from fellowship.core.errors import Conflict, NotFound, storage_errors
from fellowship.models.role import Role, UserRole

logger = logging.getLogger(__name__)

DEFAULT_ROLE = FellowshipRole.MEMBER.value.title()


async def ensure_default_roles(db: AsyncSession) -> list[Role]:
    """
    Make sure one role row exists per built-in bundle (Admin, Pastor, ...).
    Idempotent; existing rows are matched case-insensitively and left alone.
    """
    res = await db.execute(select(Role))
    existing = {r.name.strip().lower(): r for r in res.scalars().all()}

    created: list[Role] = []
    for key, definition in FELLOWSHIP_ROLES.items():
        if key.value in existing:
            continue
        # rows carry the role key ("Editor"); the bundle name is for display only
        role = Role(name=key.value.title(), description=definition.description)
        db.add(role)
        created.append(role)

    if created:
        with storage_errors("Failed to seed roles"):
            await db.commit()
        logger.info("Seeded roles: %s", ", ".join(r.name for r in created))

    return await list_roles(db)


async def list_roles(db: AsyncSession) -> list[Role]:
    res = await db.execute(select(Role).order_by(Role.id))
    return list(res.scalars().all())


async def get_role(db: AsyncSession, role_id: int) -> Optional[Role]:
    return await db.get(Role, role_id)


async def get_role_by_name(db: AsyncSession, name: str) -> Optional[Role]:
    res = await db.execute(select(Role).where(func.lower(Role.name) == name.strip().lower()))
    return res.scalar_one_or_none()


async def list_roles_for_user(db: AsyncSession, user_id: str) -> list[RoleRef]:
    stmt = (
        select(Role.id, Role.name)
        .join(UserRole, UserRole.role_id == Role.id)
        .where(UserRole.user_id == user_id)
        .order_by(Role.id)
    )
    res = await db.execute(stmt)
    return [RoleRef(id=row.id, name=row.name) for row in res.all()]


async def list_roles_by_user(db: AsyncSession) -> dict[str, list[RoleRef]]:
    stmt = (
        select(UserRole.user_id, Role.id, Role.name)
        .join(Role, Role.id == UserRole.role_id)
        .order_by(Role.id)
    )
    res = await db.execute(stmt)
    out: dict[str, list[RoleRef]] = {}
    for row in res.all():
        out.setdefault(row.user_id, []).append(RoleRef(id=row.id, name=row.name))
    return out


async def assign_role(db: AsyncSession, user_id: str, role_id: int) -> Role:
    role = await get_role(db, role_id)
    if role is None:
        raise NotFound("Role not found")

    existing = await db.get(UserRole, (user_id, role_id))
    if existing is not None:
        raise Conflict("User already has this role")

    with storage_errors("Failed to assign role"):
        db.add(UserRole(user_id=user_id, role_id=role_id))
        await db.commit()

    logger.info("Assigned role %s to user %s", role.name, user_id)
    return role


async def remove_role(db: AsyncSession, user_id: str, role_id: int) -> None:
    existing = await db.get(UserRole, (user_id, role_id))
    if existing is None:
        raise NotFound("Role assignment not found")

    with storage_errors("Failed to remove role"):
        await db.execute(
            delete(UserRole).where(UserRole.user_id == user_id, UserRole.role_id == role_id)
        )
        await db.commit()

    logger.info("Removed role %s from user %s", role_id, user_id)
