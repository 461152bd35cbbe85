"""
Local Photo Storage

Meter photos are written to a directory as JPEG files named by uuid.
Whatever format the camera produced, the stored file is re-encoded
with Pillow at quality 80, which keeps phone photos small while the
digits stay readable.
"""

import asyncio
from io import BytesIO
from pathlib import Path
from typing import Optional, Union
from uuid import uuid4

import structlog
from PIL import Image, UnidentifiedImageError

from zapntap.config import get_settings
from zapntap.services.storage.interface import PhotoStorageInterface, StorageError


logger = structlog.get_logger(__name__)

JPEG_QUALITY = 80


class LocalPhotoStorage(PhotoStorageInterface):
    """Photo files on the local filesystem."""

    def __init__(self, directory: Optional[Union[str, Path]] = None):
        self._directory = Path(directory or get_settings().app.photos_dir)

    @property
    def directory(self) -> Path:
        return self._directory

    def _write(self, image_bytes: bytes) -> str:
        try:
            with Image.open(BytesIO(image_bytes)) as img:
                rgb = img.convert("RGB")
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise StorageError(f"Photo is not a readable image: {e}") from e

        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            path = self._directory / f"{uuid4()}.jpg"
            rgb.save(path, format="JPEG", quality=JPEG_QUALITY)
        except OSError as e:
            raise StorageError(f"Failed to save photo: {e}") from e

        logger.debug("photo_saved", path=str(path))
        return str(path)

    def _unlink(self, photo_ref: str) -> bool:
        path = Path(photo_ref)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageError(f"Failed to delete photo {photo_ref}: {e}") from e
        logger.debug("photo_deleted", path=photo_ref)
        return True

    async def save_photo(self, image_bytes: bytes) -> str:
        return await asyncio.to_thread(self._write, image_bytes)

    async def delete_photo(self, photo_ref: str) -> bool:
        return await asyncio.to_thread(self._unlink, photo_ref)
