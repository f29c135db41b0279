# backend/fellowship/schemas/auth.py
from __future__ import annotations

import re
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, ConfigDict, field_validator

_E164_RE = re.compile(r"^\+[1-9]\d{1,14}$")


def _normalize_phone_e164(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    v = value.strip()
    if not v:
        return None
    v = re.sub(r"[^\d+]", "", v)
    if not _E164_RE.match(v):
        raise ValueError("Must be a valid E.164 phone number (e.g., +254712345678).")
    return v


def _normalize_name(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    v = " ".join(value.strip().split())
    return v or None


def _normalize_country(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    v = value.strip()
    if not v:
        return None
    v = v.upper()
    if not re.fullmatch(r"[A-Z]{2}", v):
        raise ValueError("Must be a 2-letter ISO country code (e.g., KE).")
    return v


class RegisterRequest(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    # strength is checked in the route so the message can list what is missing
    password: str = Field(min_length=1, max_length=256)

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        normalized = _normalize_name(v)
        if not normalized:
            raise ValueError("Must not be blank.")
        return normalized


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=256)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1, max_length=128)
    password: str = Field(min_length=1, max_length=256)


class MessageResponse(BaseModel):
    status: str = "ok"
    message: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class ProfileUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # Allow null to clear; reject empty strings via validators (normalize -> None)
    first_name: Optional[str] = Field(default=None, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    phone_e164: Optional[str] = Field(default=None, max_length=20)
    address: Optional[str] = Field(default=None, max_length=500)
    bio: Optional[str] = Field(default=None, max_length=2000)
    avatar: Optional[str] = Field(default=None, max_length=500)
    nationality: Optional[str] = Field(default=None, max_length=2)

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_name(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_name(v)

    @field_validator("phone_e164")
    @classmethod
    def validate_phone_e164(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_phone_e164(v)

    @field_validator("nationality")
    @classmethod
    def validate_nationality(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_country(v)


class RoleOut(BaseModel):
    id: int
    name: str

    model_config = {"from_attributes": True}


class MeResponse(BaseModel):
    id: str
    email: EmailStr
    first_name: str
    last_name: str
    status: str
    is_active: bool

    phone_e164: Optional[str] = None
    address: Optional[str] = None
    bio: Optional[str] = None
    avatar: Optional[str] = None
    nationality: Optional[str] = None

    roles: list[RoleOut] = Field(default_factory=list)


class AvatarResponse(BaseModel):
    message: str
    avatar: str
    url: str


class PermissionsResponse(BaseModel):
    fellowship: list[str]
    group: list[str]
    group_id: Optional[int] = None
    group_role: Optional[str] = None
