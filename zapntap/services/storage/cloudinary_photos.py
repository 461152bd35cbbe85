"""
Cloudinary Photo Storage

Meter photos can live on Cloudinary instead of the local disk, so
they survive a device change. The stored reference is the Cloudinary
public id; delivery URLs are built from it on demand.
"""

from typing import Optional
from uuid import uuid4

import cloudinary
import cloudinary.uploader
from cloudinary import CloudinaryImage
from tenacity import retry, retry_if_not_exception_type, stop_after_attempt, wait_exponential

from zapntap.config import CloudinarySettings, get_settings
from zapntap.services.storage.interface import PhotoStorageInterface, StorageError


class CloudinaryPhotoStorage(PhotoStorageInterface):
    """Photo files on Cloudinary."""

    def __init__(self, settings: Optional[CloudinarySettings] = None):
        self._settings = settings or get_settings().cloudinary
        self._configured = False

    def _configure(self):
        """Configure Cloudinary SDK."""
        if not self._configured:
            cloudinary.config(
                cloud_name=self._settings.cloud_name,
                api_key=self._settings.api_key,
                api_secret=self._settings.api_secret,
                secure=True,
            )
            self._configured = True

    def photo_url(self, photo_ref: str) -> str:
        """Delivery URL for a stored photo."""
        self._configure()
        return CloudinaryImage(photo_ref).build_url(
            transformation=[{"quality": "auto:best", "fetch_format": "auto"}]
        )

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_not_exception_type(StorageError),
        reraise=True,
    )
    def _upload(self, image_bytes: bytes) -> str:
        result = cloudinary.uploader.upload(
            image_bytes,
            public_id=str(uuid4()),
            folder=self._settings.folder,
            resource_type="image",
        )
        public_id = result.get("public_id")
        if not public_id:
            raise StorageError("No public id returned from Cloudinary")
        return public_id

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def _destroy(self, photo_ref: str) -> dict:
        return cloudinary.uploader.destroy(photo_ref, resource_type="image")

    async def save_photo(self, image_bytes: bytes) -> str:
        self._configure()
        try:
            return self._upload(image_bytes)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Cloudinary upload failed: {e}") from e

    async def delete_photo(self, photo_ref: str) -> bool:
        self._configure()
        try:
            result = self._destroy(photo_ref)
        except Exception as e:
            raise StorageError(f"Cloudinary delete failed: {e}") from e

        outcome = result.get("result")
        if outcome == "ok":
            return True
        if outcome == "not found":
            return False
        raise StorageError(f"Unexpected Cloudinary delete result: {outcome}")
