# backend/fellowship/crud/groups.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.auth.permissions import GroupRole
from fellowship.core.errors import Conflict, NotFound, ValidationFailed, storage_errors
from fellowship.models.group import Group, GroupApplication, GroupInvitation, GroupMembership
from fellowship.models.user import User

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def get_group(db: AsyncSession, group_id: int) -> Optional[Group]:
    return await db.get(Group, group_id)


async def get_user_group_role(db: AsyncSession, user_id: str, group_id: int) -> Optional[str]:
    """The caller's role inside one group, or None when not a member."""
    res = await db.execute(
        select(GroupMembership.role).where(
            GroupMembership.user_id == user_id,
            GroupMembership.group_id == group_id,
        )
    )
    return res.scalar_one_or_none()


async def member_counts(db: AsyncSession) -> dict[int, int]:
    res = await db.execute(
        select(GroupMembership.group_id, func.count(GroupMembership.user_id)).group_by(GroupMembership.group_id)
    )
    return {group_id: int(count) for group_id, count in res.all()}


async def list_groups(db: AsyncSession, *, user_id: Optional[str] = None) -> list[Group]:
    """All groups, or only those `user_id` belongs to."""
    stmt = select(Group).order_by(Group.name, Group.id)
    if user_id is not None:
        stmt = stmt.join(GroupMembership, GroupMembership.group_id == Group.id).where(
            GroupMembership.user_id == user_id
        )
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def list_members(db: AsyncSession, group_id: int) -> list[tuple[User, str]]:
    stmt = (
        select(User, GroupMembership.role)
        .join(GroupMembership, GroupMembership.user_id == User.id)
        .where(GroupMembership.group_id == group_id)
        .order_by(User.first_name, User.last_name)
    )
    res = await db.execute(stmt)
    return [(user, role) for user, role in res.all()]


async def list_members_by_group(db: AsyncSession, group_ids: list[int]) -> dict[int, list[tuple[User, str]]]:
    if not group_ids:
        return {}
    stmt = (
        select(GroupMembership.group_id, User, GroupMembership.role)
        .join(User, User.id == GroupMembership.user_id)
        .where(GroupMembership.group_id.in_(group_ids))
        .order_by(User.first_name, User.last_name)
    )
    res = await db.execute(stmt)
    out: dict[int, list[tuple[User, str]]] = {gid: [] for gid in group_ids}
    for group_id, user, role in res.all():
        out[group_id].append((user, role))
    return out


async def create_group(db: AsyncSession, *, name: str, description: Optional[str], creator_id: str) -> Group:
    group = Group(name=name, description=description)
    with storage_errors("Failed to create group"):
        db.add(group)
        await db.flush()
        db.add(GroupMembership(user_id=creator_id, group_id=group.id, role=GroupRole.LEADER.value))
        await db.commit()
        await db.refresh(group)

    logger.info("Group %s created by %s", group.id, creator_id)
    return group


async def update_group(db: AsyncSession, group: Group, data: dict[str, Any]) -> Group:
    if "name" in data and data["name"] is None:
        raise ValidationFailed("name cannot be cleared")

    for key in ("name", "description"):
        if key in data:
            setattr(group, key, data[key])
    group.updated_at = _utcnow()

    with storage_errors("Failed to update group"):
        db.add(group)
        await db.commit()
        await db.refresh(group)
    return group


async def delete_group(db: AsyncSession, group_id: int) -> None:
    with storage_errors("Failed to delete group"):
        await db.execute(delete(GroupInvitation).where(GroupInvitation.group_id == group_id))
        await db.execute(delete(GroupApplication).where(GroupApplication.group_id == group_id))
        await db.execute(delete(GroupMembership).where(GroupMembership.group_id == group_id))
        await db.execute(delete(Group).where(Group.id == group_id))
        await db.commit()

    logger.info("Group %s deleted", group_id)


async def add_member(
    db: AsyncSession,
    group_id: int,
    user_id: str,
    role: str = GroupRole.MEMBER.value,
    *,
    commit: bool = True,
) -> GroupMembership:
    existing = await db.get(GroupMembership, (user_id, group_id))
    if existing is not None:
        raise Conflict("User is already a member of this group")

    membership = GroupMembership(user_id=user_id, group_id=group_id, role=role)
    db.add(membership)
    if commit:
        with storage_errors("Failed to add group member"):
            await db.commit()
    return membership


async def update_member_role(db: AsyncSession, group_id: int, user_id: str, role: str) -> GroupMembership:
    membership = await db.get(GroupMembership, (user_id, group_id))
    if membership is None:
        raise NotFound("Membership not found")

    membership.role = role
    with storage_errors("Failed to update group member"):
        db.add(membership)
        await db.commit()
    return membership


async def remove_member(db: AsyncSession, group_id: int, user_id: str) -> None:
    membership = await db.get(GroupMembership, (user_id, group_id))
    if membership is None:
        raise NotFound("Membership not found")

    with storage_errors("Failed to remove group member"):
        await db.delete(membership)
        await db.commit()
