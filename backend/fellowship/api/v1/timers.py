# backend/fellowship/api/v1/timers.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.api.deps.session import get_principal
from fellowship.auth.guards import require_owner_or_admin
from fellowship.auth.permissions import Principal
from fellowship.core.errors import NotFound
from fellowship.crud import timers as timers_crud
from fellowship.db.session import get_db
from fellowship.models.timer import Timer, TimerSegment
from fellowship.schemas.timers import (
    SegmentCreate,
    SegmentOut,
    SegmentUpdate,
    SegmentWriteResponse,
    TimerDetail,
    TimerOut,
    TimerUpdate,
)

router = APIRouter(prefix="/timers", tags=["timers"])


async def _get_timer_or_404(db: AsyncSession, timer_id: str) -> Timer:
    timer = await timers_crud.get_timer(db, timer_id)
    if timer is None:
        raise NotFound("Timer not found")
    return timer


async def _get_segment_or_404(db: AsyncSession, timer_id: str, segment_id: int) -> TimerSegment:
    segment = await timers_crud.get_segment(db, timer_id, segment_id)
    if segment is None:
        raise NotFound("Segment not found")
    return segment


async def _detail(db: AsyncSession, timer: Timer) -> TimerDetail:
    segments = await timers_crud.list_segments(db, timer.id)
    return TimerDetail(
        **TimerOut.model_validate(timer).model_dump(),
        segments=[SegmentOut.model_validate(s) for s in segments],
        segment_total=sum(s.duration for s in segments),
        warnings=await timers_crud.overrun_warnings(db, timer),
    )


async def _segment_response(db: AsyncSession, timer: Timer, segment: TimerSegment) -> SegmentWriteResponse:
    return SegmentWriteResponse(
        segment=SegmentOut.model_validate(segment),
        segment_total=await timers_crud.segment_total(db, timer.id),
        warnings=await timers_crud.overrun_warnings(db, timer),
    )


@router.get("/{timer_id}", response_model=TimerDetail)
async def get_timer(timer_id: str, db: AsyncSession = Depends(get_db)):
    """
    Public: the timer id is the shareable link a speaker opens.
    """
    timer = await _get_timer_or_404(db, timer_id)
    return await _detail(db, timer)


@router.patch("/{timer_id}", response_model=TimerDetail)
async def update_timer(
    timer_id: str,
    payload: TimerUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_principal),
):
    timer = await _get_timer_or_404(db, timer_id)
    require_owner_or_admin(principal, timer.organizer_id)

    timer = await timers_crud.update_timer(db, timer, payload.model_dump(exclude_unset=True))
    return await _detail(db, timer)


@router.delete("/{timer_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_timer(
    timer_id: str,
    db: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_principal),
):
    timer = await _get_timer_or_404(db, timer_id)
    require_owner_or_admin(principal, timer.organizer_id)

    await timers_crud.delete_timer(db, timer_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =========================================================
# SEGMENTS
# =========================================================
@router.post("/{timer_id}/segments", response_model=SegmentWriteResponse, status_code=status.HTTP_201_CREATED)
async def add_segment(
    timer_id: str,
    payload: SegmentCreate,
    db: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_principal),
):
    """
    Segments that push the sum past the timer total are still saved; the
    response carries a warning.
    """
    timer = await _get_timer_or_404(db, timer_id)
    require_owner_or_admin(principal, timer.organizer_id)

    segment = await timers_crud.add_segment(
        db,
        timer,
        label=payload.label,
        duration=payload.duration,
        order=payload.order,
    )
    return await _segment_response(db, timer, segment)


@router.patch("/{timer_id}/segments/{segment_id}", response_model=SegmentWriteResponse)
async def update_segment(
    timer_id: str,
    segment_id: int,
    payload: SegmentUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_principal),
):
    timer = await _get_timer_or_404(db, timer_id)
    require_owner_or_admin(principal, timer.organizer_id)
    segment = await _get_segment_or_404(db, timer_id, segment_id)

    segment = await timers_crud.update_segment(db, timer, segment, payload.model_dump(exclude_unset=True))
    return await _segment_response(db, timer, segment)


@router.delete("/{timer_id}/segments/{segment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_segment(
    timer_id: str,
    segment_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_principal),
):
    timer = await _get_timer_or_404(db, timer_id)
    require_owner_or_admin(principal, timer.organizer_id)
    segment = await _get_segment_or_404(db, timer_id, segment_id)

    await timers_crud.delete_segment(db, segment)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
