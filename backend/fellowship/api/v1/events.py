# backend/fellowship/api/v1/events.py
from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.api.deps.permissions import permission_required
from fellowship.api.deps.session import get_current_principal, get_principal
from fellowship.auth.guards import require_action
from fellowship.auth.permissions import FellowshipPermission, Principal
from fellowship.auth.policies import Action, ResourceType
from fellowship.core.errors import NotFound
from fellowship.crud import attendance as attendance_crud
from fellowship.crud import events as events_crud
from fellowship.crud import rsvps as rsvps_crud
from fellowship.crud import timers as timers_crud
from fellowship.db.session import get_db
from fellowship.models.event import Event
from fellowship.schemas.events import (
    AttendanceOut,
    AttendanceWithEvent,
    AttendanceWithUser,
    CheckInRequest,
    EventCreate,
    EventOut,
    EventRsvpList,
    EventUpdate,
    RsvpOut,
    RsvpRequest,
    RsvpSummary,
    RsvpWithUser,
)
from fellowship.schemas.timers import TimerCreate, TimerOut
from fellowship.schemas.users import UserSummary

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["events"])

check_in_permission = permission_required(
    FellowshipPermission.CREATE_EVENTS,
    FellowshipPermission.EDIT_ALL_EVENTS,
    any_of=True,
)


async def _get_event_or_404(db: AsyncSession, event_id: int) -> Event:
    event = await events_crud.get_event(db, event_id)
    if event is None:
        raise NotFound("Event not found")
    return event


# =========================================================
# EVENTS
# =========================================================
@router.get("", response_model=List[EventOut])
async def list_events(
    upcoming: bool = Query(default=False),
    db: AsyncSession = Depends(get_db),
):
    return await events_crud.list_events(db, upcoming_only=upcoming)


@router.get("/attendance/me", response_model=List[AttendanceWithEvent])
async def my_attendance(
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    records = await attendance_crud.list_for_user(db, principal.id)
    return [
        AttendanceWithEvent(
            user_id=record.user_id,
            event_id=record.event_id,
            check_in_time=record.check_in_time,
            event=EventOut.model_validate(event),
        )
        for record, event in records
    ]


@router.get("/{event_id}", response_model=EventOut)
async def get_event(event_id: int, db: AsyncSession = Depends(get_db)):
    return await _get_event_or_404(db, event_id)


@router.post("", response_model=EventOut, status_code=status.HTTP_201_CREATED)
async def create_event(
    payload: EventCreate,
    db: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_principal),
):
    principal = require_action(principal, Action.CREATE, ResourceType.EVENT)
    return await events_crud.create_event(db, payload.model_dump(), creator_id=principal.id)


@router.patch("/{event_id}", response_model=EventOut)
async def update_event(
    event_id: int,
    payload: EventUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_principal),
):
    event = await _get_event_or_404(db, event_id)
    require_action(
        principal,
        Action.UPDATE,
        ResourceType.EVENT,
        is_owner=principal is not None and event.creator_id == principal.id,
    )
    return await events_crud.update_event(db, event, payload.model_dump(exclude_unset=True))


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_event(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_principal),
):
    """
    Deletes the event together with its timers, RSVPs and attendance.
    """
    event = await _get_event_or_404(db, event_id)
    require_action(
        principal,
        Action.DELETE,
        ResourceType.EVENT,
        is_owner=principal is not None and event.creator_id == principal.id,
    )
    await events_crud.delete_event(db, event_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =========================================================
# RSVP (self-service)
# =========================================================
@router.post("/{event_id}/rsvp", response_model=RsvpOut)
async def save_rsvp(
    event_id: int,
    payload: RsvpRequest,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    """
    Body: {"status": "attending" | "not_attending" | "maybe", "guest_count": 0}
    Creates or overwrites the caller's RSVP for this event.
    """
    await _get_event_or_404(db, event_id)
    return await rsvps_crud.upsert_rsvp(
        db,
        event_id=event_id,
        user_id=principal.id,
        status=payload.status,
        guest_count=payload.guest_count,
    )


@router.get("/{event_id}/rsvp", response_model=Optional[RsvpOut])
async def get_my_rsvp(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    await _get_event_or_404(db, event_id)
    return await rsvps_crud.get_rsvp(db, event_id, principal.id)


@router.delete("/{event_id}/rsvp", status_code=status.HTTP_204_NO_CONTENT)
async def delete_my_rsvp(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
):
    await rsvps_crud.delete_rsvp(db, event_id, principal.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{event_id}/rsvps", response_model=EventRsvpList)
async def list_event_rsvps(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    _principal: Principal = Depends(permission_required(FellowshipPermission.VIEW_USERS)),
):
    await _get_event_or_404(db, event_id)
    rows = await rsvps_crud.list_for_event(db, event_id)
    summary = rsvps_crud.summarize([rsvp for rsvp, _ in rows])
    return EventRsvpList(
        rsvps=[
            RsvpWithUser(
                **RsvpOut.model_validate(rsvp).model_dump(),
                user=UserSummary.model_validate(user),
            )
            for rsvp, user in rows
        ],
        summary=RsvpSummary(**summary),
    )


# =========================================================
# ATTENDANCE (elevated)
# =========================================================
@router.post("/{event_id}/check-in", response_model=AttendanceOut, status_code=status.HTTP_201_CREATED)
async def check_in(
    event_id: int,
    payload: CheckInRequest,
    db: AsyncSession = Depends(get_db),
    _principal: Principal = Depends(check_in_permission),
):
    await _get_event_or_404(db, event_id)
    return await attendance_crud.check_in(db, event_id, payload.user_id)


@router.delete("/{event_id}/check-in/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def undo_check_in(
    event_id: int,
    user_id: str,
    db: AsyncSession = Depends(get_db),
    _principal: Principal = Depends(check_in_permission),
):
    await attendance_crud.remove_check_in(db, event_id, user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{event_id}/attendance", response_model=List[AttendanceWithUser])
async def list_attendance(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    _principal: Principal = Depends(check_in_permission),
):
    await _get_event_or_404(db, event_id)
    rows = await attendance_crud.list_for_event(db, event_id)
    return [
        AttendanceWithUser(
            user_id=record.user_id,
            event_id=record.event_id,
            check_in_time=record.check_in_time,
            user=UserSummary.model_validate(user),
        )
        for record, user in rows
    ]


# =========================================================
# TIMERS (event-scoped)
# =========================================================
@router.get("/{event_id}/timers", response_model=List[TimerOut])
async def list_event_timers(event_id: int, db: AsyncSession = Depends(get_db)):
    await _get_event_or_404(db, event_id)
    return await timers_crud.list_for_event(db, event_id)


@router.post("/{event_id}/timers", response_model=TimerOut, status_code=status.HTTP_201_CREATED)
async def create_timer(
    event_id: int,
    payload: TimerCreate,
    db: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_principal),
):
    """
    Managing an event's timers is part of updating the event: the event's
    creator or an edit_all_events holder. The caller becomes the organizer.
    """
    event = await _get_event_or_404(db, event_id)
    principal = require_action(
        principal,
        Action.UPDATE,
        ResourceType.EVENT,
        is_owner=principal is not None and event.creator_id == principal.id,
    )
    return await timers_crud.create_timer(
        db,
        event_id=event_id,
        label=payload.label,
        total_duration=payload.total_duration,
        speaker_id=payload.speaker_id,
        organizer_id=principal.id,
    )
