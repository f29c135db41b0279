from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class TimerCreate(BaseModel):
    label: str = Field(min_length=1, max_length=255)
    # seconds; upper bound is settings.TIMER_MAX_DURATION_SECONDS
    total_duration: int
    speaker_id: str = Field(min_length=1)


class TimerUpdate(BaseModel):
    label: Optional[str] = Field(default=None, min_length=1, max_length=255)
    total_duration: Optional[int] = None
    speaker_id: Optional[str] = None


class SegmentCreate(BaseModel):
    label: str = Field(min_length=1, max_length=255)
    duration: int
    order: Optional[int] = Field(default=None, ge=0)


class SegmentUpdate(BaseModel):
    label: Optional[str] = Field(default=None, min_length=1, max_length=255)
    duration: Optional[int] = None
    order: Optional[int] = Field(default=None, ge=0)


class SegmentOut(BaseModel):
    id: int
    timer_id: str
    label: str
    duration: int
    order: int

    model_config = {"from_attributes": True}


class TimerOut(BaseModel):
    id: str
    label: str
    total_duration: int
    event_id: int
    speaker_id: str
    organizer_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class TimerDetail(TimerOut):
    segments: List[SegmentOut] = Field(default_factory=list)
    segment_total: int = 0
    warnings: List[str] = Field(default_factory=list)


class SegmentWriteResponse(BaseModel):
    segment: SegmentOut
    segment_total: int
    warnings: List[str] = Field(default_factory=list)
