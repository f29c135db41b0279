# backend/fellowship/models/user.py
import re
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import String, DateTime, Text
from sqlalchemy.ext.hybrid import hybrid_property
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from fellowship.db.base import Base

_E164_RE = re.compile(r"^\+[1-9]\d{1,14}$")

USER_STATUSES = ("active", "inactive", "visitor")


def generate_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=lambda: generate_id("user"))

    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str] = mapped_column(String(320), unique=True, index=True, nullable=False)

    # None for accounts that never set a password
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    avatar: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    phone_e164: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    bio: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    nationality: Mapped[Optional[str]] = mapped_column(String(2), nullable=True)  # ISO-3166-1 alpha-2

    # active | inactive | visitor
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    @hybrid_property
    def is_active(self) -> bool:
        return self.status != "inactive"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @staticmethod
    def normalize_name(value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        v = " ".join(value.strip().split())
        return v or None

    @staticmethod
    def normalize_phone_e164(value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        v = value.strip()
        if not v:
            return None
        # keep '+' and digits only
        v = re.sub(r"[^\d+]", "", v)
        if not _E164_RE.match(v):
            raise ValueError("phone_e164 must be a valid E.164 number (e.g., +254712345678).")
        return v

    @staticmethod
    def normalize_country(value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        v = value.strip()
        if not v:
            return None
        v = v.upper()
        if not re.fullmatch(r"[A-Z]{2}", v):
            raise ValueError("nationality must be a 2-letter ISO code (e.g., KE).")
        return v
