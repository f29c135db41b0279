# backend/fellowship/crud/rsvps.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.core.config import settings
from fellowship.core.errors import NotFound, ValidationFailed, storage_errors
from fellowship.models.event import RSVP_STATUSES, EventRsvp
from fellowship.models.user import User


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _validate(status: str, guest_count: int) -> None:
    if status not in RSVP_STATUSES:
        raise ValidationFailed(f"status must be one of: {', '.join(RSVP_STATUSES)}")
    if guest_count < 0 or guest_count > settings.RSVP_MAX_GUESTS:
        raise ValidationFailed(f"guest_count must be between 0 and {settings.RSVP_MAX_GUESTS}")


async def get_rsvp(db: AsyncSession, event_id: int, user_id: str) -> Optional[EventRsvp]:
    return await db.get(EventRsvp, (user_id, event_id))


async def upsert_rsvp(
    db: AsyncSession,
    *,
    event_id: int,
    user_id: str,
    status: str,
    guest_count: int = 0,
) -> EventRsvp:
    """
    One row per (user, event). A repeated RSVP overwrites status and
    guest_count in place, keeps created_at and bumps updated_at.
    """
    _validate(status, guest_count)

    rsvp = await get_rsvp(db, event_id, user_id)
    now = _utcnow()
    if rsvp is None:
        rsvp = EventRsvp(
            user_id=user_id,
            event_id=event_id,
            status=status,
            guest_count=guest_count,
            created_at=now,
            updated_at=now,
        )
    else:
        rsvp.status = status
        rsvp.guest_count = guest_count
        rsvp.updated_at = now

    with storage_errors("Failed to save RSVP"):
        db.add(rsvp)
        await db.commit()
        await db.refresh(rsvp)
    return rsvp


async def delete_rsvp(db: AsyncSession, event_id: int, user_id: str) -> None:
    rsvp = await get_rsvp(db, event_id, user_id)
    if rsvp is None:
        raise NotFound("RSVP not found")

    with storage_errors("Failed to delete RSVP"):
        await db.delete(rsvp)
        await db.commit()


async def list_for_event(db: AsyncSession, event_id: int) -> list[tuple[EventRsvp, User]]:
    stmt = (
        select(EventRsvp, User)
        .join(User, User.id == EventRsvp.user_id)
        .where(EventRsvp.event_id == event_id)
        .order_by(EventRsvp.created_at, User.first_name)
    )
    res = await db.execute(stmt)
    return [(rsvp, user) for rsvp, user in res.all()]


def summarize(rsvps: list[EventRsvp]) -> dict[str, int]:
    summary = {
        "attending": 0,
        "attending_guests": 0,
        "not_attending": 0,
        "maybe": 0,
        "maybe_guests": 0,
        "total": len(rsvps),
    }
    for rsvp in rsvps:
        if rsvp.status == "attending":
            summary["attending"] += 1
            summary["attending_guests"] += rsvp.guest_count
        elif rsvp.status == "maybe":
            summary["maybe"] += 1
            summary["maybe_guests"] += rsvp.guest_count
        elif rsvp.status == "not_attending":
            summary["not_attending"] += 1
    return summary
