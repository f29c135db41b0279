from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from fellowship.schemas.users import UserSummary

RsvpStatus = Literal["attending", "not_attending", "maybe"]


class EventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    location: Optional[str] = Field(default=None, max_length=255)


class EventUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    location: Optional[str] = Field(default=None, max_length=255)


class EventOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    start_time: datetime
    end_time: Optional[datetime] = None
    location: Optional[str] = None
    creator_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# -----------------------------
# RSVP
# -----------------------------
class RsvpRequest(BaseModel):
    # range is enforced against settings.RSVP_MAX_GUESTS
    status: RsvpStatus
    guest_count: int = 0


class RsvpOut(BaseModel):
    user_id: str
    event_id: int
    status: str
    guest_count: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class RsvpWithUser(RsvpOut):
    user: UserSummary


class RsvpSummary(BaseModel):
    attending: int
    attending_guests: int
    not_attending: int
    maybe: int
    maybe_guests: int
    total: int


class EventRsvpList(BaseModel):
    rsvps: List[RsvpWithUser]
    summary: RsvpSummary


# -----------------------------
# Attendance
# -----------------------------
class CheckInRequest(BaseModel):
    user_id: str = Field(min_length=1)


class AttendanceOut(BaseModel):
    user_id: str
    event_id: int
    check_in_time: datetime

    model_config = {"from_attributes": True}


class AttendanceWithUser(AttendanceOut):
    user: UserSummary


class AttendanceWithEvent(AttendanceOut):
    event: EventOut
