# backend/fellowship/api/v1/gallery.py
from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.api.deps.session import get_current_principal, get_principal
from fellowship.auth.guards import require_action
from fellowship.auth.permissions import Principal
from fellowship.auth.policies import Action, ResourceType
from fellowship.core.config import settings
from fellowship.core.errors import NotFound, StorageFailure
from fellowship.crud import gallery as gallery_crud
from fellowship.db.session import get_db
from fellowship.models.content import Image
from fellowship.schemas.content import (
    AlbumCreate,
    AlbumOut,
    AlbumUpdate,
    DeleteImagesRequest,
    DeleteImagesResponse,
    ImageOut,
)
from fellowship.storage.blob import (
    IMAGE_EXTENSIONS,
    LocalBlobStore,
    get_blob_store,
    new_blob_pathname,
    read_image_upload,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/gallery", tags=["gallery"])
files_router = APIRouter(prefix="/files", tags=["files"])


def _image_out(image: Image) -> ImageOut:
    return ImageOut(
        id=image.id,
        album_id=image.album_id,
        uploader_id=image.uploader_id,
        pathname=image.pathname,
        url=f"/api/v1/files/{image.pathname}",
        content_type=image.content_type,
        size=image.size,
        caption=image.caption,
        created_at=image.created_at,
    )


async def _remove_blobs(store: LocalBlobStore, pathnames: list[str]) -> None:
    for pathname in pathnames:
        await store.delete(pathname)


# =========================================================
# ALBUMS
# =========================================================
@router.get("/albums", response_model=List[AlbumOut])
async def list_albums(db: AsyncSession = Depends(get_db)):
    return await gallery_crud.list_albums(db)


@router.post("/albums", response_model=AlbumOut, status_code=status.HTTP_201_CREATED)
async def create_album(
    payload: AlbumCreate,
    db: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_principal),
):
    principal = require_action(principal, Action.CREATE, ResourceType.GALLERY)
    return await gallery_crud.create_album(
        db,
        title=payload.title,
        description=payload.description,
        creator_id=principal.id,
    )


@router.patch("/albums/{album_id}", response_model=AlbumOut)
async def update_album(
    album_id: int,
    payload: AlbumUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Optional[Principal] = Depends(get_principal),
):
    require_action(principal, Action.UPDATE, ResourceType.GALLERY)
    album = await gallery_crud.get_album(db, album_id)
    if album is None:
        raise NotFound("Album not found")
    return await gallery_crud.update_album(db, album, payload.model_dump(exclude_unset=True))


@router.delete("/albums/{album_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_album(
    album_id: int,
    db: AsyncSession = Depends(get_db),
    store: LocalBlobStore = Depends(get_blob_store),
    principal: Optional[Principal] = Depends(get_principal),
):
    require_action(principal, Action.DELETE, ResourceType.GALLERY)
    if await gallery_crud.get_album(db, album_id) is None:
        raise NotFound("Album not found")

    pathnames = await gallery_crud.delete_album(db, album_id)
    await _remove_blobs(store, pathnames)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =========================================================
# IMAGES
# =========================================================
@router.get("", response_model=List[ImageOut])
async def list_images(
    album_id: Optional[int] = Query(default=None),
    db: AsyncSession = Depends(get_db),
):
    return [_image_out(i) for i in await gallery_crud.list_images(db, album_id)]


@router.post("/upload", response_model=ImageOut, status_code=status.HTTP_201_CREATED)
async def upload_image(
    file: UploadFile = File(...),
    album_id: Optional[int] = Form(default=None),
    caption: Optional[str] = Form(default=None),
    db: AsyncSession = Depends(get_db),
    store: LocalBlobStore = Depends(get_blob_store),
    principal: Principal = Depends(get_current_principal),
):
    """
    multipart/form-data: file (+ optional album_id, caption).
    Any signed-in member may upload; size and type are capped.
    """
    content_type, data = await read_image_upload(
        file,
        allowed_types=settings.GALLERY_ALLOWED_CONTENT_TYPES,
        max_bytes=settings.GALLERY_MAX_UPLOAD_BYTES,
    )

    if album_id is not None and await gallery_crud.get_album(db, album_id) is None:
        raise NotFound("Album not found")

    pathname = new_blob_pathname("gallery", principal.id, content_type)
    await store.put(pathname, data)

    try:
        image = await gallery_crud.create_image(
            db,
            pathname=pathname,
            content_type=content_type,
            size=len(data),
            uploader_id=principal.id,
            album_id=album_id,
            caption=caption,
        )
    except StorageFailure:
        await store.delete(pathname)
        raise

    logger.info("User %s uploaded %s (%d bytes)", principal.id, pathname, len(data))
    return _image_out(image)


@router.delete("", response_model=DeleteImagesResponse)
async def delete_images(
    payload: DeleteImagesRequest,
    db: AsyncSession = Depends(get_db),
    store: LocalBlobStore = Depends(get_blob_store),
    principal: Optional[Principal] = Depends(get_principal),
):
    """
    Body: {"pathnames": ["gallery/..."]}
    Gallery moderation: manage_posts holders only, uploader or not.
    """
    require_action(principal, Action.DELETE, ResourceType.GALLERY)

    wanted = list(dict.fromkeys(payload.pathnames))
    deleted = await gallery_crud.delete_images(db, wanted)
    await _remove_blobs(store, deleted)

    return DeleteImagesResponse(deleted=deleted, not_found=[p for p in wanted if p not in deleted])


# =========================================================
# FILES (serves stored blobs)
# =========================================================
@files_router.get("/{pathname:path}")
async def get_file(
    pathname: str,
    db: AsyncSession = Depends(get_db),
    store: LocalBlobStore = Depends(get_blob_store),
):
    try:
        data = await store.get(pathname)
    except ValueError:
        raise NotFound("File not found")
    if data is None:
        raise NotFound("File not found")

    image = await gallery_crud.get_image_by_pathname(db, pathname)
    if image is not None:
        media_type = image.content_type
    else:
        # avatars have no image row
        ext = pathname.rsplit(".", 1)[-1].lower()
        media_type = next(
            (ct for ct, e in IMAGE_EXTENSIONS.items() if e == ext),
            "application/octet-stream",
        )
    return Response(content=data, media_type=media_type)
