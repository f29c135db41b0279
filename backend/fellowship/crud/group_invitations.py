# backend/fellowship/crud/group_invitations.py
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.core.errors import Conflict, NotFound, ValidationFailed, storage_errors
from fellowship.crud.groups import add_member
from fellowship.crud.notifications import queue_notification
from fellowship.models.group import Group, GroupInvitation, GroupMembership
from fellowship.models.user import User

logger = logging.getLogger(__name__)

PENDING = "pending"
ACCEPTED = "accepted"
DECLINED = "declined"


async def create_invitation(
    db: AsyncSession,
    group: Group,
    *,
    invited_user_id: str,
    inviter_user_id: str,
) -> GroupInvitation:
    invitee = await db.get(User, invited_user_id)
    if invitee is None:
        raise NotFound("User not found")

    if await db.get(GroupMembership, (invited_user_id, group.id)) is not None:
        raise Conflict("User is already a member of this group")

    pending = (
        await db.execute(
            select(GroupInvitation.id).where(
                GroupInvitation.group_id == group.id,
                GroupInvitation.invited_user_id == invited_user_id,
                GroupInvitation.status == PENDING,
            )
        )
    ).scalar_one_or_none()
    if pending is not None:
        raise Conflict("A pending invitation already exists for this user")

    invitation = GroupInvitation(
        group_id=group.id,
        invited_user_id=invited_user_id,
        inviter_user_id=inviter_user_id,
        status=PENDING,
    )
    db.add(invitation)
    queue_notification(db, invited_user_id, f"You have been invited to join {group.name}.", link="/groups/invitations")

    with storage_errors("Failed to create invitation"):
        await db.commit()
        await db.refresh(invitation)

    logger.info("User %s invited %s to group %s", inviter_user_id, invited_user_id, group.id)
    return invitation


async def get_invitation(db: AsyncSession, invitation_id: int) -> Optional[GroupInvitation]:
    return await db.get(GroupInvitation, invitation_id)


async def list_for_user(db: AsyncSession, user_id: str, *, pending_only: bool = True) -> list[GroupInvitation]:
    stmt = select(GroupInvitation).where(GroupInvitation.invited_user_id == user_id)
    if pending_only:
        stmt = stmt.where(GroupInvitation.status == PENDING)
    stmt = stmt.order_by(GroupInvitation.created_at.desc(), GroupInvitation.id.desc())
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def respond_to_invitation(db: AsyncSession, invitation: GroupInvitation, status: str) -> GroupInvitation:
    if invitation.status != PENDING:
        raise Conflict(f"Invitation already {invitation.status}")
    if status not in {ACCEPTED, DECLINED}:
        raise ValidationFailed("status must be accepted or declined")

    invitation.status = status
    db.add(invitation)

    if status == ACCEPTED:
        existing = await db.get(GroupMembership, (invitation.invited_user_id, invitation.group_id))
        if existing is None:
            await add_member(db, invitation.group_id, invitation.invited_user_id, commit=False)

    with storage_errors("Failed to respond to invitation"):
        await db.commit()
        await db.refresh(invitation)
    return invitation
