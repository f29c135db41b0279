# backend/fellowship/crud/users.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.core.errors import storage_errors
from fellowship.models.content import Album, Image, Notification, Post
from fellowship.models.event import Attendance, Event, EventRsvp
from fellowship.models.group import GroupApplication, GroupInvitation, GroupMembership
from fellowship.models.password_reset_token import PasswordResetToken
from fellowship.models.role import UserRole
from fellowship.models.timer import Timer, TimerSegment
from fellowship.models.user import User

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("first_name", "last_name", "phone_e164", "address", "bio", "avatar", "nationality")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def get_user(db: AsyncSession, user_id: str) -> Optional[User]:
    return await db.get(User, user_id)


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    res = await db.execute(select(User).where(User.email == normalize_email(email)))
    return res.scalar_one_or_none()


async def create_user(
    db: AsyncSession,
    *,
    first_name: str,
    last_name: str,
    email: str,
    password_hash: Optional[str],
    role_id: Optional[int] = None,
) -> User:
    """
    Insert a user and (optionally) its first role assignment in one commit.
    """
    user = User(
        first_name=first_name,
        last_name=last_name,
        email=normalize_email(email),
        password_hash=password_hash,
        status="active",
    )
    with storage_errors("Failed to create account"):
        db.add(user)
        await db.flush()
        if role_id is not None:
            db.add(UserRole(user_id=user.id, role_id=role_id))
        await db.commit()
        await db.refresh(user)
    return user


async def update_profile(db: AsyncSession, user: User, data: dict[str, Any]) -> User:
    for key in PROFILE_FIELDS:
        if key in data:
            setattr(user, key, data[key])
    user.updated_at = _utcnow()

    with storage_errors("Failed to update profile"):
        db.add(user)
        await db.commit()
        await db.refresh(user)
    return user


async def set_avatar(db: AsyncSession, user: User, pathname: str) -> User:
    user.avatar = pathname
    user.updated_at = _utcnow()

    with storage_errors("Failed to update profile picture"):
        db.add(user)
        await db.commit()
        await db.refresh(user)
    return user


async def set_password(db: AsyncSession, user: User, password_hash: str) -> None:
    user.password_hash = password_hash
    user.updated_at = _utcnow()
    db.add(user)


async def list_users(db: AsyncSession) -> list[User]:
    res = await db.execute(select(User).order_by(User.created_at, User.email))
    return list(res.scalars().all())


async def delete_user(db: AsyncSession, user_id: str) -> None:
    """
    Remove a user and everything that only makes sense with them, in one
    transaction. Content they authored survives with the reference cleared.
    """
    with storage_errors("Failed to delete user"):
        speaker_timers = select(Timer.id).where(Timer.speaker_id == user_id)
        await db.execute(delete(TimerSegment).where(TimerSegment.timer_id.in_(speaker_timers)))
        await db.execute(delete(Timer).where(Timer.speaker_id == user_id))

        await db.execute(delete(UserRole).where(UserRole.user_id == user_id))
        await db.execute(delete(GroupMembership).where(GroupMembership.user_id == user_id))
        await db.execute(delete(GroupApplication).where(GroupApplication.user_id == user_id))
        await db.execute(delete(GroupInvitation).where(GroupInvitation.invited_user_id == user_id))
        await db.execute(delete(EventRsvp).where(EventRsvp.user_id == user_id))
        await db.execute(delete(Attendance).where(Attendance.user_id == user_id))
        await db.execute(delete(PasswordResetToken).where(PasswordResetToken.user_id == user_id))
        await db.execute(delete(Notification).where(Notification.user_id == user_id))

        await db.execute(update(Timer).where(Timer.organizer_id == user_id).values(organizer_id=None))
        await db.execute(update(Event).where(Event.creator_id == user_id).values(creator_id=None))
        await db.execute(update(Post).where(Post.author_id == user_id).values(author_id=None))
        await db.execute(update(Album).where(Album.creator_id == user_id).values(creator_id=None))
        await db.execute(update(Image).where(Image.uploader_id == user_id).values(uploader_id=None))
        await db.execute(
            update(GroupApplication)
            .where(GroupApplication.reviewed_by_id == user_id)
            .values(reviewed_by_id=None)
        )
        await db.execute(
            update(GroupInvitation)
            .where(GroupInvitation.inviter_user_id == user_id)
            .values(inviter_user_id=None)
        )

        await db.execute(delete(User).where(User.id == user_id))
        await db.commit()

    logger.info("Deleted user %s", user_id)


async def search_users(db: AsyncSession, term: str, limit: int = 20) -> list[User]:
    pattern = f"%{term.strip().lower()}%"
    stmt = (
        select(User)
        .where(
            or_(
                User.email.ilike(pattern),
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
            )
        )
        .order_by(User.first_name, User.last_name)
        .limit(limit)
    )
    res = await db.execute(stmt)
    return list(res.scalars().all())
