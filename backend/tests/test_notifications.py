# tests/test_notifications.py
from __future__ import annotations

import pytest
from sqlalchemy import select

from fellowship.models.content import Notification

from helpers import auth_headers, count, create_user, fetch_all


async def _notify(db, user, message: str, is_read: bool = False) -> Notification:
    notification = Notification(user_id=user.id, message=message, is_read=is_read)
    db.add(notification)
    await db.flush()
    return notification


@pytest.mark.asyncio
async def test_list_my_notifications(client, db):
    me = await create_user(db)
    someone_else = await create_user(db)
    await _notify(db, me, "Welcome")
    await _notify(db, me, "Old news", is_read=True)
    await _notify(db, someone_else, "Not yours")
    await db.commit()

    assert (await client.get("/api/v1/notifications/me")).status_code == 401

    r = await client.get("/api/v1/notifications/me", headers=auth_headers(me))
    assert r.status_code == 200
    assert sorted(n["message"] for n in r.json()) == ["Old news", "Welcome"]

    r = await client.get("/api/v1/notifications/me?unread=true", headers=auth_headers(me))
    assert [n["message"] for n in r.json()] == ["Welcome"]


@pytest.mark.asyncio
async def test_mark_read_and_delete_are_owner_only(client, db):
    me = await create_user(db)
    intruder = await create_user(db, roles=["Pastor"])
    admin = await create_user(db, roles=["Admin"])
    first = await _notify(db, me, "First")
    second = await _notify(db, me, "Second")
    await db.commit()

    r = await client.post(f"/api/v1/notifications/{first.id}/read", headers=auth_headers(intruder))
    assert r.status_code == 403

    r = await client.post(f"/api/v1/notifications/{first.id}/read", headers=auth_headers(me))
    assert r.status_code == 200
    assert r.json()["is_read"] is True

    rows = await fetch_all(db, select(Notification).where(Notification.id == first.id))
    assert rows[0].is_read is True

    assert (await client.delete(f"/api/v1/notifications/{second.id}", headers=auth_headers(intruder))).status_code == 403
    assert (await client.delete(f"/api/v1/notifications/{second.id}", headers=auth_headers(admin))).status_code == 204
    assert (await client.delete(f"/api/v1/notifications/{second.id}", headers=auth_headers(me))).status_code == 404
    assert (await client.post("/api/v1/notifications/9999/read", headers=auth_headers(me))).status_code == 404

    assert await count(db, Notification) == 1
