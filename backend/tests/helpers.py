# tests/helpers.py
from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from sqlalchemy import func, select

from fellowship.core.security import create_access_token, hash_password
from fellowship.crud.roles import get_role_by_name
from fellowship.models.event import Event
from fellowship.models.group import Group, GroupMembership
from fellowship.models.role import UserRole
from fellowship.models.user import User

STRONG_PASSWORD = "Str0ng!Passw0rd"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def create_user(
    db,
    email: Optional[str] = None,
    *,
    roles: Iterable[str] = (),
    password: Optional[str] = None,
    status: str = "active",
    first_name: str = "Test",
    last_name: str = "User",
) -> User:
    user = User(
        first_name=first_name,
        last_name=last_name,
        email=(email or f"user_{uuid.uuid4().hex[:8]}@example.com").lower().strip(),
        password_hash=hash_password(password) if password else None,
        status=status,
    )
    db.add(user)
    await db.flush()

    for name in roles:
        role = await get_role_by_name(db, name)
        db.add(UserRole(user_id=user.id, role_id=role.id))
    await db.flush()
    return user


async def create_event(db, creator: Optional[User] = None, title: str = "Sunday Service") -> Event:
    event = Event(
        title=title,
        start_time=utcnow() + timedelta(days=3),
        end_time=utcnow() + timedelta(days=3, hours=2),
        location="Main Hall",
        creator_id=creator.id if creator else None,
    )
    db.add(event)
    await db.flush()
    return event


async def create_group(db, name: str = "Youth", leader: Optional[User] = None, members: Iterable[User] = ()) -> Group:
    group = Group(name=name, description=f"{name} ministry")
    db.add(group)
    await db.flush()

    if leader is not None:
        db.add(GroupMembership(user_id=leader.id, group_id=group.id, role="leader"))
    for member in members:
        db.add(GroupMembership(user_id=member.id, group_id=group.id, role="member"))
    await db.flush()
    return group


def auth_headers(user_or_id) -> dict[str, str]:
    user_id = user_or_id if isinstance(user_or_id, str) else user_or_id.id
    return {"Authorization": f"Bearer {create_access_token(subject=user_id)}"}


async def count(db, model, *criteria) -> int:
    stmt = select(func.count()).select_from(model)
    for c in criteria:
        stmt = stmt.where(c)
    res = await db.execute(stmt)
    return int(res.scalar() or 0)


async def fetch_all(db, stmt) -> list:
    """Always re-read rows; the API writes through its own sessions."""
    res = await db.execute(stmt.execution_options(populate_existing=True))
    return list(res.scalars().all())
