# backend/fellowship/crud/group_applications.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.core.errors import Conflict, ValidationFailed, storage_errors
from fellowship.crud.groups import add_member
from fellowship.crud.notifications import queue_notification
from fellowship.models.group import Group, GroupApplication, GroupMembership

logger = logging.getLogger(__name__)

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ApplyResult:
    created: list[GroupApplication] = field(default_factory=list)
    already_applied: list[int] = field(default_factory=list)
    already_member: list[int] = field(default_factory=list)


async def apply_to_groups(db: AsyncSession, user_id: str, group_ids: Sequence[int]) -> ApplyResult:
    """
    Bulk application. Unknown group ids reject the whole request; groups the
    user already applied to or belongs to are skipped and reported.
    """
    wanted = list(dict.fromkeys(group_ids))
    if not wanted:
        raise ValidationFailed("group_ids must not be empty")

    res = await db.execute(select(Group.id).where(Group.id.in_(wanted)))
    found = set(res.scalars().all())
    missing = [gid for gid in wanted if gid not in found]
    if missing:
        raise ValidationFailed(f"Unknown group ids: {missing}")

    res = await db.execute(
        select(GroupApplication.group_id).where(
            GroupApplication.user_id == user_id,
            GroupApplication.group_id.in_(wanted),
        )
    )
    applied = set(res.scalars().all())

    res = await db.execute(
        select(GroupMembership.group_id).where(
            GroupMembership.user_id == user_id,
            GroupMembership.group_id.in_(wanted),
        )
    )
    member_of = set(res.scalars().all())

    result = ApplyResult()
    for gid in wanted:
        if gid in member_of:
            result.already_member.append(gid)
            continue
        if gid in applied:
            result.already_applied.append(gid)
            continue
        application = GroupApplication(user_id=user_id, group_id=gid, status=PENDING)
        db.add(application)
        result.created.append(application)

    if result.created:
        with storage_errors("Failed to submit applications"):
            await db.commit()
            for application in result.created:
                await db.refresh(application)

    return result


async def get_application(db: AsyncSession, application_id: int) -> Optional[GroupApplication]:
    return await db.get(GroupApplication, application_id)


async def list_for_user(db: AsyncSession, user_id: str) -> list[GroupApplication]:
    res = await db.execute(
        select(GroupApplication)
        .where(GroupApplication.user_id == user_id)
        .order_by(GroupApplication.created_at.desc(), GroupApplication.id.desc())
    )
    return list(res.scalars().all())


async def list_for_group(db: AsyncSession, group_id: int, status: Optional[str] = None) -> list[GroupApplication]:
    stmt = select(GroupApplication).where(GroupApplication.group_id == group_id)
    if status:
        stmt = stmt.where(GroupApplication.status == status)
    stmt = stmt.order_by(GroupApplication.created_at, GroupApplication.id)
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def review_application(
    db: AsyncSession,
    application: GroupApplication,
    *,
    status: str,
    reviewer_id: str,
) -> GroupApplication:
    if application.status != PENDING:
        raise Conflict(f"Application already {application.status}")
    if status not in {APPROVED, REJECTED}:
        raise ValidationFailed("status must be approved or rejected")

    group = await db.get(Group, application.group_id)
    group_name = group.name if group is not None else "the group"

    application.status = status
    application.reviewed_by_id = reviewer_id
    application.reviewed_at = _utcnow()
    db.add(application)

    if status == APPROVED:
        existing = await db.get(GroupMembership, (application.user_id, application.group_id))
        if existing is None:
            await add_member(db, application.group_id, application.user_id, commit=False)
        message = f"Your application to join {group_name} was approved."
    else:
        message = f"Your application to join {group_name} was not approved."

    queue_notification(db, application.user_id, message, link=f"/groups/{application.group_id}")

    with storage_errors("Failed to review application"):
        await db.commit()
        await db.refresh(application)

    logger.info("Application %s %s by %s", application.id, status, reviewer_id)
    return application
