from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.core.errors import storage_errors
from fellowship.models.content import Post

logger = logging.getLogger(__name__)

PUBLISHED = "published"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def get_post(db: AsyncSession, post_id: int) -> Optional[Post]:
    return await db.get(Post, post_id)


async def list_posts(db: AsyncSession, *, include_unpublished: bool = False, author_id: Optional[str] = None) -> list[Post]:
    stmt = select(Post)
    if not include_unpublished:
        if author_id is None:
            stmt = stmt.where(Post.status == PUBLISHED)
        else:
            # published posts plus the caller's own drafts
            stmt = stmt.where((Post.status == PUBLISHED) | (Post.author_id == author_id))
    stmt = stmt.order_by(Post.created_at.desc(), Post.id.desc())
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def create_post(db: AsyncSession, *, title: str, content: str, status: str, author_id: str) -> Post:
    post = Post(title=title, content=content, status=status, author_id=author_id)
    if status == PUBLISHED:
        post.published_at = _utcnow()

    with storage_errors("Failed to create post"):
        db.add(post)
        await db.commit()
        await db.refresh(post)

    logger.info("Post %s created by %s (%s)", post.id, author_id, status)
    return post


async def update_post(db: AsyncSession, post: Post, data: dict[str, Any]) -> Post:
    for key in ("title", "content"):
        if data.get(key) is not None:
            setattr(post, key, data[key])

    new_status = data.get("status")
    if new_status is not None and new_status != post.status:
        if new_status == PUBLISHED and post.published_at is None:
            post.published_at = _utcnow()
        post.status = new_status
    post.updated_at = _utcnow()

    with storage_errors("Failed to update post"):
        db.add(post)
        await db.commit()
        await db.refresh(post)
    return post


async def delete_post(db: AsyncSession, post: Post) -> None:
    with storage_errors("Failed to delete post"):
        await db.delete(post)
        await db.commit()
