# backend/fellowship/crud/gallery.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.core.errors import ValidationFailed, storage_errors
from fellowship.models.content import Album, Image

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def get_album(db: AsyncSession, album_id: int) -> Optional[Album]:
    return await db.get(Album, album_id)


async def list_albums(db: AsyncSession) -> list[Album]:
    res = await db.execute(select(Album).order_by(Album.created_at.desc(), Album.id.desc()))
    return list(res.scalars().all())


async def create_album(db: AsyncSession, *, title: str, description: Optional[str], creator_id: str) -> Album:
    album = Album(title=title, description=description, creator_id=creator_id)
    with storage_errors("Failed to create album"):
        db.add(album)
        await db.commit()
        await db.refresh(album)
    return album


async def update_album(db: AsyncSession, album: Album, data: dict[str, Any]) -> Album:
    if "title" in data and data["title"] is None:
        raise ValidationFailed("title cannot be cleared")

    for key in ("title", "description"):
        if key in data:
            setattr(album, key, data[key])
    album.updated_at = _utcnow()

    with storage_errors("Failed to update album"):
        db.add(album)
        await db.commit()
        await db.refresh(album)
    return album


async def delete_album(db: AsyncSession, album_id: int) -> list[str]:
    """Delete the album and its image rows; returns the blob pathnames to remove."""
    res = await db.execute(select(Image.pathname).where(Image.album_id == album_id))
    pathnames = list(res.scalars().all())

    with storage_errors("Failed to delete album"):
        await db.execute(delete(Image).where(Image.album_id == album_id))
        await db.execute(delete(Album).where(Album.id == album_id))
        await db.commit()
    return pathnames


async def list_images(db: AsyncSession, album_id: Optional[int] = None) -> list[Image]:
    stmt = select(Image)
    if album_id is not None:
        stmt = stmt.where(Image.album_id == album_id)
    stmt = stmt.order_by(Image.created_at.desc(), Image.id.desc())
    res = await db.execute(stmt)
    return list(res.scalars().all())


async def create_image(
    db: AsyncSession,
    *,
    pathname: str,
    content_type: str,
    size: int,
    uploader_id: str,
    album_id: Optional[int] = None,
    caption: Optional[str] = None,
) -> Image:
    image = Image(
        pathname=pathname,
        content_type=content_type,
        size=size,
        uploader_id=uploader_id,
        album_id=album_id,
        caption=caption,
    )
    with storage_errors("Failed to save image"):
        db.add(image)
        await db.commit()
        await db.refresh(image)
    return image


async def get_image_by_pathname(db: AsyncSession, pathname: str) -> Optional[Image]:
    res = await db.execute(select(Image).where(Image.pathname == pathname))
    return res.scalar_one_or_none()


async def delete_images(db: AsyncSession, pathnames: Sequence[str]) -> list[str]:
    """Deletes image rows by pathname; returns the pathnames that existed."""
    res = await db.execute(select(Image.pathname).where(Image.pathname.in_(list(pathnames))))
    found = list(res.scalars().all())
    if not found:
        return []

    with storage_errors("Failed to delete images"):
        await db.execute(delete(Image).where(Image.pathname.in_(found)))
        await db.commit()

    logger.info("Deleted %d gallery image(s)", len(found))
    return found
