from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.core.errors import Conflict, NotFound, storage_errors
from fellowship.models.event import Attendance, Event
from fellowship.models.user import User

logger = logging.getLogger(__name__)


async def check_in(db: AsyncSession, event_id: int, user_id: str) -> Attendance:
    if await db.get(User, user_id) is None:
        raise NotFound("User not found")

    if await db.get(Attendance, (user_id, event_id)) is not None:
        raise Conflict("User already checked in")

    record = Attendance(user_id=user_id, event_id=event_id)
    with storage_errors("Failed to record attendance"):
        db.add(record)
        await db.commit()
        await db.refresh(record)

    logger.info("User %s checked in to event %s", user_id, event_id)
    return record


async def remove_check_in(db: AsyncSession, event_id: int, user_id: str) -> None:
    record = await db.get(Attendance, (user_id, event_id))
    if record is None:
        raise NotFound("Attendance record not found")

    with storage_errors("Failed to remove attendance"):
        await db.delete(record)
        await db.commit()


async def list_for_event(db: AsyncSession, event_id: int) -> list[tuple[Attendance, User]]:
    stmt = (
        select(Attendance, User)
        .join(User, User.id == Attendance.user_id)
        .where(Attendance.event_id == event_id)
        .order_by(Attendance.check_in_time)
    )
    res = await db.execute(stmt)
    return [(record, user) for record, user in res.all()]


async def list_for_user(db: AsyncSession, user_id: str) -> list[tuple[Attendance, Event]]:
    stmt = (
        select(Attendance, Event)
        .join(Event, Event.id == Attendance.event_id)
        .where(Attendance.user_id == user_id)
        .order_by(Event.start_time.desc())
    )
    res = await db.execute(stmt)
    return [(record, event) for record, event in res.all()]
