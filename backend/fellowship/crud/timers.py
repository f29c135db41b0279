# backend/fellowship/crud/timers.py
"""
Speaker timers and their ordered segments.

Durations are whole seconds. Each value is capped on its own; the sum of a
timer's segments may exceed the timer total, which is reported back as a
warning instead of rejected.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.core.config import settings
from fellowship.core.errors import NotFound, ValidationFailed, storage_errors
from fellowship.models.timer import Timer, TimerSegment
from fellowship.models.user import User

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _check_duration(value: int, field_name: str, ceiling: Optional[int] = None) -> None:
    cap = settings.TIMER_MAX_DURATION_SECONDS
    if value < 1 or value > cap:
        raise ValidationFailed(f"{field_name} must be between 1 and {cap} seconds")
    if ceiling is not None and value > ceiling:
        raise ValidationFailed(f"{field_name} cannot exceed the timer's total duration ({ceiling} seconds)")


async def segment_total(db: AsyncSession, timer_id: str) -> int:
    res = await db.execute(
        select(func.coalesce(func.sum(TimerSegment.duration), 0)).where(TimerSegment.timer_id == timer_id)
    )
    return int(res.scalar() or 0)


async def overrun_warnings(db: AsyncSession, timer: Timer) -> list[str]:
    total = await segment_total(db, timer.id)
    if total <= timer.total_duration:
        return []
    logger.warning(
        "Timer %s segments add up to %ss, over its %ss total",
        timer.id,
        total,
        timer.total_duration,
    )
    return [f"Segments add up to {total} seconds, which exceeds the timer's total of {timer.total_duration} seconds."]


async def get_timer(db: AsyncSession, timer_id: str) -> Optional[Timer]:
    return await db.get(Timer, timer_id)


async def list_segments(db: AsyncSession, timer_id: str) -> list[TimerSegment]:
    res = await db.execute(
        select(TimerSegment)
        .where(TimerSegment.timer_id == timer_id)
        .order_by(TimerSegment.order, TimerSegment.id)
    )
    return list(res.scalars().all())


async def list_for_event(db: AsyncSession, event_id: int) -> list[Timer]:
    res = await db.execute(select(Timer).where(Timer.event_id == event_id).order_by(Timer.created_at, Timer.id))
    return list(res.scalars().all())


async def create_timer(
    db: AsyncSession,
    *,
    event_id: int,
    label: str,
    total_duration: int,
    speaker_id: str,
    organizer_id: str,
) -> Timer:
    _check_duration(total_duration, "total_duration")
    if await db.get(User, speaker_id) is None:
        raise NotFound("Speaker not found")

    timer = Timer(
        event_id=event_id,
        label=label,
        total_duration=total_duration,
        speaker_id=speaker_id,
        organizer_id=organizer_id,
    )
    with storage_errors("Failed to create timer"):
        db.add(timer)
        await db.commit()
        await db.refresh(timer)

    logger.info("Timer %s created for event %s", timer.id, event_id)
    return timer


async def update_timer(db: AsyncSession, timer: Timer, data: dict[str, Any]) -> Timer:
    if "total_duration" in data and data["total_duration"] is not None:
        _check_duration(data["total_duration"], "total_duration")
        timer.total_duration = data["total_duration"]
    if data.get("label") is not None:
        timer.label = data["label"]
    if data.get("speaker_id") is not None:
        if await db.get(User, data["speaker_id"]) is None:
            raise NotFound("Speaker not found")
        timer.speaker_id = data["speaker_id"]
    timer.updated_at = _utcnow()

    with storage_errors("Failed to update timer"):
        db.add(timer)
        await db.commit()
        await db.refresh(timer)
    return timer


async def delete_timer(db: AsyncSession, timer_id: str) -> None:
    with storage_errors("Failed to delete timer"):
        await db.execute(delete(TimerSegment).where(TimerSegment.timer_id == timer_id))
        await db.execute(delete(Timer).where(Timer.id == timer_id))
        await db.commit()


async def add_segment(
    db: AsyncSession,
    timer: Timer,
    *,
    label: str,
    duration: int,
    order: Optional[int] = None,
) -> TimerSegment:
    _check_duration(duration, "duration", ceiling=timer.total_duration)

    if order is None:
        res = await db.execute(
            select(func.coalesce(func.max(TimerSegment.order), -1)).where(TimerSegment.timer_id == timer.id)
        )
        order = int(res.scalar()) + 1

    segment = TimerSegment(timer_id=timer.id, label=label, duration=duration, order=order)
    with storage_errors("Failed to add segment"):
        db.add(segment)
        await db.commit()
        await db.refresh(segment)
    return segment


async def get_segment(db: AsyncSession, timer_id: str, segment_id: int) -> Optional[TimerSegment]:
    segment = await db.get(TimerSegment, segment_id)
    if segment is None or segment.timer_id != timer_id:
        return None
    return segment


async def update_segment(db: AsyncSession, timer: Timer, segment: TimerSegment, data: dict[str, Any]) -> TimerSegment:
    if data.get("duration") is not None:
        _check_duration(data["duration"], "duration", ceiling=timer.total_duration)
        segment.duration = data["duration"]
    if data.get("label") is not None:
        segment.label = data["label"]
    if data.get("order") is not None:
        segment.order = data["order"]

    with storage_errors("Failed to update segment"):
        db.add(segment)
        await db.commit()
        await db.refresh(segment)
    return segment


async def delete_segment(db: AsyncSession, segment: TimerSegment) -> None:
    with storage_errors("Failed to delete segment"):
        await db.delete(segment)
        await db.commit()
