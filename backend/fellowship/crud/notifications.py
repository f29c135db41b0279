from __future__ import annotations

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.core.errors import storage_errors
from fellowship.models.content import Notification


def queue_notification(db: AsyncSession, user_id: str, message: str, link: Optional[str] = None) -> Notification:
    """Stage a notification; the caller's commit persists it."""
    notification = Notification(user_id=user_id, message=message, link=link, is_read=False)
    db.add(notification)
    return notification


async def list_for_user(db: AsyncSession, user_id: str, *, unread_only: bool = False) -> list[Notification]:
    stmt = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        stmt = stmt.where(Notification.is_read.is_(False))
    stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc())
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def get_notification(db: AsyncSession, notification_id: int) -> Optional[Notification]:
    return await db.get(Notification, notification_id)


async def mark_read(db: AsyncSession, notification: Notification) -> Notification:
    notification.is_read = True
    with storage_errors("Failed to update notification"):
        db.add(notification)
        await db.commit()
        await db.refresh(notification)
    return notification


async def delete_notification(db: AsyncSession, notification: Notification) -> None:
    with storage_errors("Failed to delete notification"):
        await db.delete(notification)
        await db.commit()
