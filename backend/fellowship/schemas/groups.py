from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from fellowship.schemas.users import UserSummary

GroupRoleName = Literal["leader", "member"]


class GroupCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = None


class GroupUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None


class GroupOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    member_count: int = 0
    created_at: datetime

    model_config = {"from_attributes": True}


class GroupMemberOut(BaseModel):
    user: UserSummary
    role: str


class GroupWithMembers(GroupOut):
    members: List[GroupMemberOut] = Field(default_factory=list)


class AddMemberRequest(BaseModel):
    user_id: str = Field(min_length=1)
    role: GroupRoleName = "member"


class UpdateMemberRequest(BaseModel):
    role: GroupRoleName


# -----------------------------
# Applications
# -----------------------------
class ApplyRequest(BaseModel):
    group_ids: List[int] = Field(min_length=1)


class ApplicationOut(BaseModel):
    id: int
    user_id: str
    group_id: int
    status: str
    created_at: datetime
    reviewed_by_id: Optional[str] = None
    reviewed_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class ApplyResponse(BaseModel):
    created: List[ApplicationOut]
    already_applied: List[int]
    already_member: List[int]


class ReviewRequest(BaseModel):
    status: Literal["approved", "rejected"]


# -----------------------------
# Invitations
# -----------------------------
class InviteRequest(BaseModel):
    user_id: str = Field(min_length=1)


class InvitationOut(BaseModel):
    id: int
    group_id: int
    invited_user_id: str
    inviter_user_id: Optional[str] = None
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class RespondRequest(BaseModel):
    status: Literal["accepted", "declined"]
