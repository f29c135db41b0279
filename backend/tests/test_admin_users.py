# tests/test_admin_users.py
from __future__ import annotations

import pytest

from fellowship.crud.roles import get_role_by_name
from fellowship.models.content import Notification, Post
from fellowship.models.event import Attendance, EventRsvp
from fellowship.models.group import GroupMembership
from fellowship.models.role import UserRole
from fellowship.models.timer import Timer, TimerSegment
from fellowship.models.user import User

from helpers import auth_headers, count, create_event, create_group, create_user


@pytest.mark.asyncio
async def test_list_users_with_roles(client, db):
    viewer = await create_user(db, roles=["Member"], first_name="Vera")
    await create_user(db, "zed@example.com", roles=["Editor", "Deacon"], first_name="Zed")
    no_roles = await create_user(db)
    await db.commit()

    assert (await client.get("/api/v1/admin/users")).status_code == 401
    assert (await client.get("/api/v1/admin/users", headers=auth_headers(no_roles))).status_code == 403

    r = await client.get("/api/v1/admin/users", headers=auth_headers(viewer))
    assert r.status_code == 200
    assert len(r.json()) == 3

    r = await client.get("/api/v1/admin/users?q=ZED", headers=auth_headers(viewer))
    assert [u["email"] for u in r.json()] == ["zed@example.com"]
    assert sorted(role["name"] for role in r.json()[0]["roles"]) == ["Deacon", "Editor"]


@pytest.mark.asyncio
async def test_list_roles_shows_bundles(client, db):
    viewer = await create_user(db, roles=["Member"])
    await db.commit()

    r = await client.get("/api/v1/admin/roles", headers=auth_headers(viewer))
    assert r.status_code == 200
    roles = {role["name"]: role["permissions"] for role in r.json()}
    assert set(roles) == {"Admin", "Pastor", "Editor", "Deacon", "Member"}
    assert roles["Member"] == ["view_users"]
    assert "manage_roles" not in roles["Pastor"]
    assert "manage_roles" in roles["Admin"]

    display = {role["name"]: role["display_name"] for role in r.json()}
    assert display["Editor"] == "Content Editor"
    assert display["Pastor"] == "Pastor"


@pytest.mark.asyncio
async def test_assign_and_remove_roles(client, db):
    pastor = await create_user(db, roles=["Pastor"])
    editor = await create_user(db, roles=["Editor"])
    target = await create_user(db, roles=["Member"])
    editor_role = await get_role_by_name(db, "Editor")
    editor_role_id = editor_role.id
    await db.commit()
    url = f"/api/v1/admin/users/{target.id}/roles"

    r = await client.post(url, json={"role_id": editor_role_id}, headers=auth_headers(editor))
    assert r.status_code == 403

    r = await client.post(url, json={"role_id": editor_role_id}, headers=auth_headers(pastor))
    assert r.status_code == 201
    assert r.json() == {"id": editor_role_id, "name": "Editor"}

    assert (await client.post(url, json={"role_id": editor_role_id}, headers=auth_headers(pastor))).status_code == 409
    assert (await client.post(url, json={"role_id": 999}, headers=auth_headers(pastor))).status_code == 404
    r = await client.post(
        "/api/v1/admin/users/user_missing/roles", json={"role_id": editor_role_id}, headers=auth_headers(pastor)
    )
    assert r.status_code == 404

    # the new role is effective on the next request
    r = await client.get("/api/v1/auth/me/permissions", headers=auth_headers(target))
    assert "publish_posts" in r.json()["fellowship"]

    assert (await client.delete(f"{url}/{editor_role_id}", headers=auth_headers(pastor))).status_code == 204
    assert (await client.delete(f"{url}/{editor_role_id}", headers=auth_headers(pastor))).status_code == 404
    assert await count(db, UserRole, UserRole.user_id == target.id) == 1


@pytest.mark.asyncio
async def test_delete_user_removes_dependents(client, db):
    organizer = await create_user(db, roles=["Editor"])
    doomed = await create_user(db, roles=["Member"])
    other = await create_user(db, roles=["Member"])
    event = await create_event(db, creator=organizer)
    await create_group(db, "Choir", leader=other, members=[doomed])

    talk = Timer(label="Talk", total_duration=600, event_id=event.id, speaker_id=doomed.id, organizer_id=organizer.id)
    db.add(talk)
    await db.flush()
    db.add(TimerSegment(timer_id=talk.id, label="Part 1", duration=300, order=0))
    db.add(EventRsvp(user_id=doomed.id, event_id=event.id, status="attending", guest_count=0))
    db.add(Attendance(user_id=doomed.id, event_id=event.id))
    db.add(Notification(user_id=doomed.id, message="hi", is_read=False))
    db.add(Post(title="Testimony", content="...", status="published", author_id=doomed.id))
    doomed_id = doomed.id
    await db.commit()

    assert (await client.delete(f"/api/v1/users/{doomed_id}", headers=auth_headers(other))).status_code == 403
    # users may delete their own account
    assert (await client.delete(f"/api/v1/users/{doomed_id}", headers=auth_headers(doomed_id))).status_code == 204

    assert await count(db, User, User.id == doomed_id) == 0
    assert await count(db, UserRole, UserRole.user_id == doomed_id) == 0
    assert await count(db, GroupMembership, GroupMembership.user_id == doomed_id) == 0
    assert await count(db, Timer) == 0
    assert await count(db, TimerSegment) == 0
    assert await count(db, EventRsvp) == 0
    assert await count(db, Attendance) == 0
    assert await count(db, Notification) == 0

    assert await count(db, Post, Post.author_id.is_(None)) == 1

    # the group survives with its other member
    assert await count(db, GroupMembership) == 1


@pytest.mark.asyncio
async def test_admin_can_delete_any_user(client, db):
    admin = await create_user(db, roles=["Admin"])
    pastor = await create_user(db, roles=["Pastor"])
    target = await create_user(db)
    await db.commit()

    assert (await client.delete(f"/api/v1/users/{target.id}", headers=auth_headers(pastor))).status_code == 403
    assert (await client.delete(f"/api/v1/users/{target.id}", headers=auth_headers(admin))).status_code == 204
    assert (await client.delete(f"/api/v1/users/{target.id}", headers=auth_headers(admin))).status_code == 404
