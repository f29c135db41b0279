# tests/test_auth.py
from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import select

from fellowship.core.config import settings
from fellowship.core.security import create_access_token, verify_password
from fellowship.models.password_reset_token import PasswordResetToken
from fellowship.models.role import Role, UserRole
from fellowship.models.user import User

from helpers import STRONG_PASSWORD, auth_headers, count, create_group, create_user, fetch_all, utcnow


def register_body(email: str, password: str = STRONG_PASSWORD) -> dict:
    return {"first_name": "Grace", "last_name": "Njeri", "email": email, "password": password}


# ---------------------------------------------------------
# Registration
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_register_creates_member(client, db):
    r = await client.post("/api/v1/auth/register", json=register_body("Grace@Example.com"))
    assert r.status_code == 201

    users = await fetch_all(db, select(User).where(User.email == "grace@example.com"))
    assert len(users) == 1
    assert users[0].id.startswith("user_")
    assert verify_password(STRONG_PASSWORD, users[0].password_hash)

    roles = await fetch_all(
        db,
        select(Role).join(UserRole, UserRole.role_id == Role.id).where(UserRole.user_id == users[0].id),
    )
    assert [role.name for role in roles] == ["Member"]


@pytest.mark.asyncio
async def test_register_does_not_reveal_existing_email(client, db):
    await create_user(db, "taken@example.com")
    await db.commit()

    fresh = await client.post("/api/v1/auth/register", json=register_body("new@example.com"))
    taken = await client.post("/api/v1/auth/register", json=register_body("taken@example.com"))

    assert fresh.status_code == taken.status_code == 201
    assert fresh.json() == taken.json()
    assert await count(db, User, User.email == "taken@example.com") == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("password", ["Sh0rt!", "alllowercase1!", "ALLUPPER1!", "NoDigits!!", "NoSymbols11"])
async def test_register_rejects_weak_passwords(client, password):
    r = await client.post("/api/v1/auth/register", json=register_body("weak@example.com", password))
    assert r.status_code == 400
    assert "Password must contain" in r.json()["detail"]


@pytest.mark.asyncio
async def test_register_while_logged_in_is_rejected(client, db):
    user = await create_user(db, "me@example.com")
    await db.commit()

    r = await client.post(
        "/api/v1/auth/register",
        json=register_body("other@example.com"),
        headers=auth_headers(user),
    )
    assert r.status_code == 400


# ---------------------------------------------------------
# Login
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_login_returns_token(client, db):
    await create_user(db, "login@example.com", password=STRONG_PASSWORD, roles=["Member"])
    await db.commit()

    r = await client.post("/api/v1/auth/login", json={"email": "LOGIN@example.com", "password": STRONG_PASSWORD})
    assert r.status_code == 200
    token = r.json()["access_token"]

    me = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == "login@example.com"
    assert [role["name"] for role in me.json()["roles"]] == ["Member"]


@pytest.mark.asyncio
async def test_login_failures_look_identical(client, db):
    await create_user(db, "real@example.com", password=STRONG_PASSWORD)
    await create_user(db, "nopassword@example.com", password=None)
    await db.commit()

    unknown = await client.post("/api/v1/auth/login", json={"email": "ghost@example.com", "password": STRONG_PASSWORD})
    wrong = await client.post("/api/v1/auth/login", json={"email": "real@example.com", "password": "Wr0ng!Password"})
    passwordless = await client.post(
        "/api/v1/auth/login", json={"email": "nopassword@example.com", "password": STRONG_PASSWORD}
    )

    for r in (unknown, wrong, passwordless):
        assert r.status_code == 401
        assert r.json() == {"detail": "Invalid email or password"}


@pytest.mark.asyncio
async def test_inactive_account_is_forbidden_only_with_correct_password(client, db):
    await create_user(db, "inactive@example.com", password=STRONG_PASSWORD, status="inactive")
    await db.commit()

    wrong = await client.post("/api/v1/auth/login", json={"email": "inactive@example.com", "password": "Wr0ng!Password"})
    assert wrong.status_code == 401

    right = await client.post("/api/v1/auth/login", json={"email": "inactive@example.com", "password": STRONG_PASSWORD})
    assert right.status_code == 403


# ---------------------------------------------------------
# Session gateway
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_me_requires_a_usable_session(client, db):
    inactive = await create_user(db, "gone@example.com", status="inactive")
    await db.commit()

    assert (await client.get("/api/v1/auth/me")).status_code == 401
    assert (await client.get("/api/v1/auth/me", headers={"Authorization": "Bearer garbage"})).status_code == 401
    assert (await client.get("/api/v1/auth/me", headers=auth_headers("user_doesnotexist"))).status_code == 401
    assert (await client.get("/api/v1/auth/me", headers=auth_headers(inactive))).status_code == 401


@pytest.mark.asyncio
async def test_expired_token_is_rejected(client, db):
    user = await create_user(db, "exp@example.com")
    await db.commit()

    token = create_access_token(subject=user.id, expires_minutes=-5)
    r = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert r.status_code == 401


@pytest.mark.asyncio
async def test_update_profile(client, db):
    user = await create_user(db, "profile@example.com")
    await db.commit()

    r = await client.patch(
        "/api/v1/auth/me",
        json={"first_name": "  Mary   Wanjiku ", "phone_e164": "+254 712 345 678", "nationality": "ke"},
        headers=auth_headers(user),
    )
    assert r.status_code == 200
    body = r.json()
    assert body["first_name"] == "Mary Wanjiku"
    assert body["phone_e164"] == "+254712345678"
    assert body["nationality"] == "KE"

    r = await client.patch("/api/v1/auth/me", json={}, headers=auth_headers(user))
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_my_permissions_with_group(client, db):
    user = await create_user(db, "perm@example.com", roles=["Member"])
    group = await create_group(db, "Prayer", leader=user)
    await db.commit()

    r = await client.get("/api/v1/auth/me/permissions", headers=auth_headers(user))
    assert r.status_code == 200
    assert r.json()["fellowship"] == ["view_users"]
    assert r.json()["group"] == []

    r = await client.get(f"/api/v1/auth/me/permissions?group_id={group.id}", headers=auth_headers(user))
    assert r.json()["group_role"] == "leader"
    assert "approve_applications" in r.json()["group"]


# ---------------------------------------------------------
# Password reset
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_forgot_password_does_not_reveal_existence(client, db, monkeypatch):
    monkeypatch.setattr(settings, "RETURN_RESET_TOKEN_IN_RESPONSE", False)
    await create_user(db, "exists@example.com", password=STRONG_PASSWORD)
    await db.commit()

    known = await client.post("/api/v1/auth/forgot-password", json={"email": "exists@example.com"})
    unknown = await client.post("/api/v1/auth/forgot-password", json={"email": "nobody@example.com"})

    assert known.status_code == unknown.status_code == 200
    assert known.json() == unknown.json()
    assert await count(db, PasswordResetToken) == 1


@pytest.mark.asyncio
async def test_reset_password_flow(client, db):
    user = await create_user(db, "reset@example.com", password=STRONG_PASSWORD)
    user_id = user.id
    # an old expired token that should be cleaned up
    db.add(PasswordResetToken(user_id=user_id, token="old", expires_at=utcnow() - timedelta(hours=2), used=False))
    await db.commit()

    r = await client.post("/api/v1/auth/forgot-password", json={"email": "reset@example.com"})
    assert r.status_code == 200
    token = r.json()["reset_token"]
    assert await count(db, PasswordResetToken, PasswordResetToken.token == "old") == 0

    weak = await client.post("/api/v1/auth/reset-password", json={"token": token, "password": "weak"})
    assert weak.status_code == 400

    new_password = "N3w!Password"
    r = await client.post("/api/v1/auth/reset-password", json={"token": token, "password": new_password})
    assert r.status_code == 200

    # single use
    again = await client.post("/api/v1/auth/reset-password", json={"token": token, "password": new_password})
    assert again.status_code == 400

    login = await client.post("/api/v1/auth/login", json={"email": "reset@example.com", "password": new_password})
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_expired_reset_token_is_rejected(client, db):
    user = await create_user(db, "late@example.com", password=STRONG_PASSWORD)
    db.add(PasswordResetToken(user_id=user.id, token="expired", expires_at=utcnow() - timedelta(minutes=1), used=False))
    await db.commit()

    r = await client.post("/api/v1/auth/reset-password", json={"token": "expired", "password": "N3w!Password"})
    assert r.status_code == 400


# ---------------------------------------------------------
# Profile picture
# ---------------------------------------------------------
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64
WEBP_BYTES = b"RIFF\x24\x00\x00\x00WEBPVP8 " + b"\x00" * 32


@pytest.mark.asyncio
async def test_upload_avatar_replaces_previous(client, db, blob_store):
    user = await create_user(db, "avatar@example.com")
    await db.commit()
    headers = auth_headers(user)

    files = {"file": ("me.png", PNG_BYTES, "image/png")}
    assert (await client.put("/api/v1/auth/me/avatar", files=files)).status_code == 401

    first = await client.put("/api/v1/auth/me/avatar", files=files, headers=headers)
    assert first.status_code == 200
    first_path = first.json()["avatar"]
    assert first_path.startswith(f"avatars/{user.id}/")
    assert first_path.endswith(".png")
    assert await blob_store.get(first_path) == PNG_BYTES

    served = await client.get(first.json()["url"])
    assert served.status_code == 200
    assert served.content == PNG_BYTES
    assert served.headers["content-type"] == "image/png"

    second = await client.put(
        "/api/v1/auth/me/avatar", files={"file": ("me.webp", WEBP_BYTES, "image/webp")}, headers=headers
    )
    assert second.status_code == 200
    second_path = second.json()["avatar"]
    assert second_path != first_path
    assert await blob_store.get(first_path) is None
    assert await blob_store.get(second_path) == WEBP_BYTES

    me = await client.get("/api/v1/auth/me", headers=headers)
    assert me.json()["avatar"] == second_path


@pytest.mark.asyncio
async def test_avatar_upload_keeps_blobs_it_does_not_own(client, db, blob_store):
    user = await create_user(db, "keeper@example.com")
    await db.commit()
    headers = auth_headers(user)

    await blob_store.put("avatars/user_someone/theirs.png", PNG_BYTES)
    r = await client.patch("/api/v1/auth/me", json={"avatar": "avatars/user_someone/theirs.png"}, headers=headers)
    assert r.status_code == 200

    r = await client.put("/api/v1/auth/me/avatar", files={"file": ("me.png", PNG_BYTES, "image/png")}, headers=headers)
    assert r.status_code == 200
    assert await blob_store.get("avatars/user_someone/theirs.png") == PNG_BYTES


@pytest.mark.asyncio
async def test_avatar_upload_rejects_bad_files(client, db, monkeypatch):
    user = await create_user(db, "picky@example.com")
    await db.commit()
    headers = auth_headers(user)
    url = "/api/v1/auth/me/avatar"

    # gif is fine for the gallery but not for profile pictures
    r = await client.put(url, files={"file": ("me.gif", b"GIF89a" + b"\x00" * 16, "image/gif")}, headers=headers)
    assert r.status_code == 400

    r = await client.put(url, files={"file": ("me.png", b"", "image/png")}, headers=headers)
    assert r.status_code == 400

    monkeypatch.setattr(settings, "AVATAR_MAX_UPLOAD_BYTES", 16)
    r = await client.put(url, files={"file": ("me.png", PNG_BYTES, "image/png")}, headers=headers)
    assert r.status_code == 400

    me = await client.get("/api/v1/auth/me", headers=headers)
    assert me.json()["avatar"] is None
