# tests/test_posts_gallery.py
from __future__ import annotations

import pytest

from fellowship.core.config import settings
from fellowship.models.content import Album, Image, Post

from helpers import auth_headers, count, create_user

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


# ---------------------------------------------------------
# Posts
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_drafts_are_hidden_from_other_members(client, db):
    author = await create_user(db, roles=["Editor"])
    reader = await create_user(db, roles=["Member"])
    db.add(Post(title="Published", content="Hello", status="published", author_id=author.id))
    draft = Post(title="Draft", content="Soon", status="draft", author_id=author.id)
    db.add(draft)
    await db.commit()

    r = await client.get("/api/v1/posts")
    assert [p["title"] for p in r.json()] == ["Published"]

    r = await client.get("/api/v1/posts", headers=auth_headers(reader))
    assert [p["title"] for p in r.json()] == ["Published"]

    r = await client.get("/api/v1/posts", headers=auth_headers(author))
    assert {p["title"] for p in r.json()} == {"Published", "Draft"}

    assert (await client.get(f"/api/v1/posts/{draft.id}")).status_code == 404
    assert (await client.get(f"/api/v1/posts/{draft.id}", headers=auth_headers(reader))).status_code == 404
    assert (await client.get(f"/api/v1/posts/{draft.id}", headers=auth_headers(author))).status_code == 200


@pytest.mark.asyncio
async def test_create_and_publish_posts(client, db):
    editor = await create_user(db, roles=["Editor"])
    member = await create_user(db, roles=["Member"])
    await db.commit()

    body = {"title": "Harvest", "content": "Bring produce"}
    assert (await client.post("/api/v1/posts", json=body)).status_code == 401
    assert (await client.post("/api/v1/posts", json=body, headers=auth_headers(member))).status_code == 403

    r = await client.post("/api/v1/posts", json=body, headers=auth_headers(editor))
    assert r.status_code == 201
    assert r.json()["status"] == "draft"
    assert r.json()["published_at"] is None
    post_id = r.json()["id"]

    r = await client.patch(f"/api/v1/posts/{post_id}", json={"status": "published"}, headers=auth_headers(editor))
    assert r.status_code == 200
    assert r.json()["status"] == "published"
    assert r.json()["published_at"] is not None

    r = await client.get(f"/api/v1/posts/{post_id}", headers=auth_headers(member))
    assert r.status_code == 200


@pytest.mark.asyncio
async def test_author_without_publish_permission_cannot_publish(client, db):
    # a former editor keeps authorship of their draft but lost the role
    author = await create_user(db, roles=["Member"])
    post = Post(title="Old draft", content="...", status="draft", author_id=author.id)
    db.add(post)
    await db.commit()

    r = await client.patch(f"/api/v1/posts/{post.id}", json={"title": "Edited"}, headers=auth_headers(author))
    assert r.status_code == 200

    r = await client.patch(f"/api/v1/posts/{post.id}", json={"status": "published"}, headers=auth_headers(author))
    assert r.status_code == 403


@pytest.mark.asyncio
async def test_post_delete_ownership(client, db):
    author = await create_user(db, roles=["Member"])
    other = await create_user(db, roles=["Member"])
    editor = await create_user(db, roles=["Editor"])
    mine = Post(title="Mine", content="x", status="published", author_id=author.id)
    theirs = Post(title="Theirs", content="x", status="published", author_id=other.id)
    db.add_all([mine, theirs])
    await db.commit()

    assert (await client.delete(f"/api/v1/posts/{mine.id}")).status_code == 401
    assert (await client.delete(f"/api/v1/posts/{mine.id}", headers=auth_headers(other))).status_code == 403
    assert (await client.delete(f"/api/v1/posts/{mine.id}", headers=auth_headers(author))).status_code == 204
    # manage_posts may delete anyone's post
    assert (await client.delete(f"/api/v1/posts/{theirs.id}", headers=auth_headers(editor))).status_code == 204

    assert await count(db, Post) == 0


# ---------------------------------------------------------
# Gallery
# ---------------------------------------------------------
@pytest.mark.asyncio
async def test_albums_require_content_permission(client, db):
    editor = await create_user(db, roles=["Editor"])
    member = await create_user(db, roles=["Member"])
    await db.commit()

    r = await client.post("/api/v1/gallery/albums", json={"title": "Baptisms"}, headers=auth_headers(member))
    assert r.status_code == 403

    r = await client.post("/api/v1/gallery/albums", json={"title": "Baptisms"}, headers=auth_headers(editor))
    assert r.status_code == 201
    album_id = r.json()["id"]

    r = await client.patch(
        f"/api/v1/gallery/albums/{album_id}", json={"description": "2026"}, headers=auth_headers(editor)
    )
    assert r.json()["description"] == "2026"

    r = await client.patch(f"/api/v1/gallery/albums/{album_id}", json={"title": None}, headers=auth_headers(editor))
    assert r.status_code == 400

    assert [a["title"] for a in (await client.get("/api/v1/gallery/albums")).json()] == ["Baptisms"]


@pytest.mark.asyncio
async def test_upload_and_serve_image(client, db, blob_store):
    member = await create_user(db, roles=["Member"])
    album = Album(title="Picnic")
    db.add(album)
    await db.commit()

    files = {"file": ("photo.png", PNG_BYTES, "image/png")}
    assert (await client.post("/api/v1/gallery/upload", files=files)).status_code == 401

    r = await client.post(
        "/api/v1/gallery/upload",
        files=files,
        data={"album_id": str(album.id), "caption": "Lunch"},
        headers=auth_headers(member),
    )
    assert r.status_code == 201
    image = r.json()
    assert image["pathname"].startswith(f"gallery/{member.id}/")
    assert image["pathname"].endswith(".png")
    assert image["url"] == f"/api/v1/files/{image['pathname']}"
    assert image["size"] == len(PNG_BYTES)
    assert image["album_id"] == album.id

    assert await blob_store.get(image["pathname"]) == PNG_BYTES

    served = await client.get(image["url"])
    assert served.status_code == 200
    assert served.content == PNG_BYTES
    assert served.headers["content-type"] == "image/png"

    r = await client.get(f"/api/v1/gallery?album_id={album.id}")
    assert [i["caption"] for i in r.json()] == ["Lunch"]


@pytest.mark.asyncio
async def test_upload_rejects_bad_files(client, db, monkeypatch):
    member = await create_user(db)
    await db.commit()
    headers = auth_headers(member)

    r = await client.post(
        "/api/v1/gallery/upload", files={"file": ("notes.txt", b"hello", "text/plain")}, headers=headers
    )
    assert r.status_code == 400

    r = await client.post("/api/v1/gallery/upload", files={"file": ("empty.png", b"", "image/png")}, headers=headers)
    assert r.status_code == 400

    monkeypatch.setattr(settings, "GALLERY_MAX_UPLOAD_BYTES", 16)
    r = await client.post(
        "/api/v1/gallery/upload", files={"file": ("big.png", PNG_BYTES, "image/png")}, headers=headers
    )
    assert r.status_code == 400

    monkeypatch.undo()
    r = await client.post(
        "/api/v1/gallery/upload",
        files={"file": ("photo.png", PNG_BYTES, "image/png")},
        data={"album_id": "9999"},
        headers=headers,
    )
    assert r.status_code == 404

    assert await count(db, Image) == 0


@pytest.mark.asyncio
async def test_delete_images_by_pathname(client, db, blob_store):
    uploader = await create_user(db, roles=["Member"])
    editor = await create_user(db, roles=["Editor"])
    await db.commit()

    r = await client.post(
        "/api/v1/gallery/upload",
        files={"file": ("photo.png", PNG_BYTES, "image/png")},
        headers=auth_headers(uploader),
    )
    pathname = r.json()["pathname"]

    body = {"pathnames": [pathname, "gallery/nope.png"]}
    r = await client.request("DELETE", "/api/v1/gallery", json=body, headers=auth_headers(uploader))
    assert r.status_code == 403

    r = await client.request("DELETE", "/api/v1/gallery", json=body, headers=auth_headers(editor))
    assert r.status_code == 200
    assert r.json() == {"deleted": [pathname], "not_found": ["gallery/nope.png"]}

    assert await count(db, Image) == 0
    assert await blob_store.get(pathname) is None
    assert (await client.get(f"/api/v1/files/{pathname}")).status_code == 404


@pytest.mark.asyncio
async def test_delete_album_removes_its_images(client, db, blob_store):
    editor = await create_user(db, roles=["Editor"])
    album = Album(title="Retreat", creator_id=editor.id)
    db.add(album)
    await db.commit()

    r = await client.post(
        "/api/v1/gallery/upload",
        files={"file": ("photo.png", PNG_BYTES, "image/png")},
        data={"album_id": str(album.id)},
        headers=auth_headers(editor),
    )
    pathname = r.json()["pathname"]

    r = await client.delete(f"/api/v1/gallery/albums/{album.id}", headers=auth_headers(editor))
    assert r.status_code == 204

    assert await count(db, Album) == 0
    assert await count(db, Image) == 0
    assert await blob_store.get(pathname) is None
    assert (await client.delete(f"/api/v1/gallery/albums/{album.id}", headers=auth_headers(editor))).status_code == 404
