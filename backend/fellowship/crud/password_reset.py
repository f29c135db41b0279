# backend/fellowship/crud/password_reset.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.core.config import settings
from fellowship.core.security import generate_reset_token
from fellowship.models.password_reset_token import PasswordResetToken


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def purge_stale_tokens(db: AsyncSession, user_id: str) -> None:
    """Drop the user's used or expired tokens."""
    await db.execute(
        delete(PasswordResetToken).where(
            PasswordResetToken.user_id == user_id,
            or_(
                PasswordResetToken.used.is_(True),
                PasswordResetToken.expires_at < _utcnow(),
            ),
        )
    )


async def issue_token(db: AsyncSession, user_id: str) -> PasswordResetToken:
    """Stages a fresh single-use token; the caller commits."""
    await purge_stale_tokens(db, user_id)
    record = PasswordResetToken(
        user_id=user_id,
        token=generate_reset_token(),
        expires_at=_utcnow() + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES),
        used=False,
    )
    db.add(record)
    return record


async def find_valid_token(db: AsyncSession, token: str) -> Optional[PasswordResetToken]:
    """Unused and unexpired; expiry is compared in SQL."""
    res = await db.execute(
        select(PasswordResetToken).where(
            PasswordResetToken.token == token,
            PasswordResetToken.used.is_(False),
            PasswordResetToken.expires_at > _utcnow(),
        )
    )
    return res.scalar_one_or_none()


async def consume_token(db: AsyncSession, record: PasswordResetToken) -> None:
    """Mark used and drop the user's other tokens; the caller commits."""
    record.used = True
    db.add(record)
    await db.execute(
        delete(PasswordResetToken).where(
            PasswordResetToken.user_id == record.user_id,
            PasswordResetToken.id != record.id,
        )
    )
