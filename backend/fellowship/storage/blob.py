"""
Blob storage for gallery images and profile pictures.

Development and tests keep blobs on the local filesystem under
settings.UPLOAD_DIR; keys are forward-slash pathnames such as
`gallery/<user_id>/<name>.jpg` or `avatars/<user_id>/<name>.png`.
"""

from __future__ import annotations

import logging
import secrets
from pathlib import Path
from typing import Optional, Sequence

from fastapi import UploadFile

from fellowship.core.config import settings
from fellowship.core.errors import ValidationFailed

logger = logging.getLogger(__name__)


class LocalBlobStore:
    """Store blobs on the local filesystem."""

    def __init__(self, base_path: str = "./data/blobs"):
        self.base_path = Path(base_path).resolve()
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _key_to_path(self, pathname: str) -> Path:
        path = (self.base_path / pathname.lstrip("/")).resolve()
        # refuse anything that escapes the store root ("../" and friends)
        if self.base_path not in path.parents:
            raise ValueError(f"Invalid blob pathname: {pathname!r}")
        return path

    async def put(self, pathname: str, data: bytes) -> str:
        path = self._key_to_path(pathname)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return pathname

    async def get(self, pathname: str) -> Optional[bytes]:
        path = self._key_to_path(pathname)
        if not path.is_file():
            return None
        return path.read_bytes()

    async def delete(self, pathname: str) -> bool:
        path = self._key_to_path(pathname)
        if path.is_file():
            path.unlink()
            return True
        logger.info("Blob %s already absent", pathname)
        return False


_store: Optional[LocalBlobStore] = None


def get_blob_store() -> LocalBlobStore:
    """FastAPI dependency; tests override it with a store under tmp_path."""
    global _store
    if _store is None:
        _store = LocalBlobStore(settings.UPLOAD_DIR)
    return _store


IMAGE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/heic": "heic",
    "image/webp": "webp",
}


async def read_image_upload(file: UploadFile, *, allowed_types: Sequence[str], max_bytes: int) -> tuple[str, bytes]:
    """
    Validate an uploaded image and return (content_type, data).
    Wrong type, empty files and files over `max_bytes` raise ValidationFailed.
    """
    content_type = (file.content_type or "").lower()
    if content_type not in allowed_types:
        raise ValidationFailed(f"Unsupported file type. Allowed: {', '.join(allowed_types)}")

    data = await file.read(max_bytes + 1)
    if not data:
        raise ValidationFailed("File is empty")
    if len(data) > max_bytes:
        raise ValidationFailed(f"File exceeds the {max_bytes} byte limit")
    return content_type, data


def new_blob_pathname(prefix: str, owner_id: str, content_type: str) -> str:
    ext = IMAGE_EXTENSIONS.get(content_type, "bin")
    return f"{prefix}/{owner_id}/{secrets.token_hex(12)}.{ext}"
