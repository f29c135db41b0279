# backend/fellowship/crud/events.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.core.errors import ValidationFailed, storage_errors
from fellowship.models.event import Attendance, Event, EventRsvp
from fellowship.models.timer import Timer, TimerSegment

logger = logging.getLogger(__name__)

EVENT_FIELDS = ("title", "description", "start_time", "end_time", "location")
REQUIRED_EVENT_FIELDS = ("title", "start_time")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything stored is UTC
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def _check_window(start_time: Optional[datetime], end_time: Optional[datetime]) -> None:
    if start_time is None or end_time is None:
        return
    if _as_utc(end_time) <= _as_utc(start_time):
        raise ValidationFailed("end_time must be after start_time")


async def get_event(db: AsyncSession, event_id: int) -> Optional[Event]:
    return await db.get(Event, event_id)


async def list_events(db: AsyncSession, *, upcoming_only: bool = False) -> list[Event]:
    stmt = select(Event)
    if upcoming_only:
        stmt = stmt.where(Event.start_time >= _utcnow())
    stmt = stmt.order_by(Event.start_time, Event.id)
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def create_event(db: AsyncSession, data: dict[str, Any], creator_id: str) -> Event:
    _check_window(data.get("start_time"), data.get("end_time"))

    event = Event(creator_id=creator_id, **{k: data.get(k) for k in EVENT_FIELDS})
    with storage_errors("Failed to create event"):
        db.add(event)
        await db.commit()
        await db.refresh(event)

    logger.info("Event %s created by %s", event.id, creator_id)
    return event


async def update_event(db: AsyncSession, event: Event, data: dict[str, Any]) -> Event:
    for key in REQUIRED_EVENT_FIELDS:
        if key in data and data[key] is None:
            raise ValidationFailed(f"{key} cannot be cleared")

    start_time = data.get("start_time", event.start_time)
    end_time = data.get("end_time", event.end_time)
    _check_window(start_time, end_time)

    for key in EVENT_FIELDS:
        if key in data:
            setattr(event, key, data[key])
    event.updated_at = _utcnow()

    with storage_errors("Failed to update event"):
        db.add(event)
        await db.commit()
        await db.refresh(event)
    return event


async def delete_event(db: AsyncSession, event_id: int) -> None:
    """
    Remove the event with its timers, timer segments, RSVPs and attendance.
    Either everything goes or nothing does.
    """
    with storage_errors("Failed to delete event"):
        timer_ids = select(Timer.id).where(Timer.event_id == event_id)
        await db.execute(delete(TimerSegment).where(TimerSegment.timer_id.in_(timer_ids)))
        await db.execute(delete(Timer).where(Timer.event_id == event_id))
        await db.execute(delete(EventRsvp).where(EventRsvp.event_id == event_id))
        await db.execute(delete(Attendance).where(Attendance.event_id == event_id))
        await db.execute(delete(Event).where(Event.id == event_id))
        await db.commit()

    logger.info("Event %s deleted", event_id)
