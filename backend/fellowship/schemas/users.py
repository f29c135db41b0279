from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from fellowship.schemas.auth import RoleOut


class UserSummary(BaseModel):
    id: str
    first_name: str
    last_name: str
    email: EmailStr
    avatar: Optional[str] = None

    model_config = {"from_attributes": True}


class UserWithRoles(BaseModel):
    id: str
    first_name: str
    last_name: str
    email: EmailStr
    status: str
    created_at: datetime
    roles: List[RoleOut] = Field(default_factory=list)


class RoleWithPermissions(BaseModel):
    id: int
    name: str
    display_name: Optional[str] = None
    description: Optional[str] = None
    permissions: List[str] = Field(default_factory=list)


class AssignRoleRequest(BaseModel):
    role_id: int = Field(ge=1)
