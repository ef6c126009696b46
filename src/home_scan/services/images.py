"""Upload, relate and remove images within a session."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol
from uuid import uuid4

from home_scan.domain.errors import NotFoundError, ValidationFailedError
from home_scan.domain.sessions import AnalysisStatus, Image
from home_scan.services.session_store import SessionStore, utc_now

_logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = frozenset(
    {"image/jpeg", "image/jpg", "image/png", "image/heic"}
)
SESSION_NOT_FOUND = "Session not found or expired"


class ImageStorage(Protocol):
    """Blob storage for processed originals and thumbnails."""

    async def save(self, path: str, data: bytes) -> None:
        """Store bytes under a storage path."""

    async def load(self, path: str) -> bytes | None:
        """Return stored bytes, or ``None`` when the path does not exist."""

    async def delete(self, path: str) -> None:
        """Delete a stored path."""


@dataclass(frozen=True)
class ProcessedImage:
    """JPEG encodings produced from an upload."""

    original: bytes
    thumbnail: bytes


class ImageProcessor(Protocol):
    """Converts uploaded bytes into a normalized JPEG and thumbnail."""

    def process(self, data: bytes) -> ProcessedImage:
        """Return the processed original and thumbnail."""


@dataclass(frozen=True)
class UploadResult:
    """Identifiers and URLs of a stored upload."""

    image_id: str
    thumbnail_url: str
    original_url: str


@dataclass(frozen=True)
class RemovalResult:
    """Images removed by a delete and the count left in the session."""

    removed_image_ids: list[str]
    remaining_images: int


@dataclass
class ImageService:
    """Application service for image lifecycle actions."""

    store: SessionStore
    storage: ImageStorage
    processor: ImageProcessor
    max_images_per_session: int = 30
    max_image_size_bytes: int = 10 * 1024 * 1024

    async def upload(  # noqa: PLR0913
        self,
        session_id: str,
        filename: str,
        content_type: str | None,
        data: bytes,
        parent_image_id: str | None = None,
    ) -> UploadResult:
        """Validate, process and store an upload, then add it as pending."""
        session = self.store.get(session_id)
        if session is None:
            raise NotFoundError(SESSION_NOT_FOUND)
        if len(session.images) >= self.max_images_per_session:
            raise ValidationFailedError(
                f"Maximum {self.max_images_per_session} images per session"
            )
        if not _is_allowed_type(content_type, filename):
            raise ValidationFailedError(
                "Invalid file type. Allowed: JPG, JPEG, PNG, HEIC"
            )
        if len(data) > self.max_image_size_bytes:
            limit_mb = self.max_image_size_bytes // (1024 * 1024)
            raise ValidationFailedError(f"File too large. Maximum {limit_mb}MB")

        processed = await asyncio.to_thread(self.processor.process, data)
        image_id = str(uuid4())
        storage_path = f"{session_id}/{image_id}.jpg"
        thumbnail_path = f"{session_id}/{image_id}_thumb.jpg"
        await self.storage.save(storage_path, processed.original)
        await self.storage.save(thumbnail_path, processed.thumbnail)

        image = Image(
            id=image_id,
            session_id=session_id,
            parent_image_id=parent_image_id or None,
            original_filename=filename,
            storage_path=storage_path,
            thumbnail_path=thumbnail_path,
            uploaded_at=utc_now(),
            analysis_status=AnalysisStatus.PENDING,
        )
        try:
            added = self.store.add_image(
                session_id, image, max_images=self.max_images_per_session
            )
        except ValidationFailedError:
            await self._discard_files([image])
            raise
        if added is None:
            await self._discard_files([image])
            raise NotFoundError(SESSION_NOT_FOUND)
        if image.parent_image_id and added.find_image(image.parent_image_id) is None:
            _logger.warning(
                "Image uploaded with unknown parent: image_id=%s parent_id=%s",
                image_id,
                image.parent_image_id,
            )

        _logger.info("Image uploaded: session_id=%s image_id=%s", session_id, image_id)
        return UploadResult(
            image_id=image_id,
            thumbnail_url=f"/images/{session_id}/{image_id}/thumbnail",
            original_url=f"/images/{session_id}/{image_id}",
        )

    def relate(self, session_id: str, image_id: str, parent_image_id: str) -> Image:
        """Link an image to a primary image as one of its related images."""
        if not parent_image_id:
            raise ValidationFailedError("Parent image ID is required")
        session = self.store.get(session_id)
        if session is None:
            raise NotFoundError(SESSION_NOT_FOUND)
        if session.find_image(image_id) is None:
            raise NotFoundError("Child image not found")
        if session.find_image(parent_image_id) is None:
            raise NotFoundError("Parent image not found")

        linked = self.store.link_image(session_id, image_id, parent_image_id)
        if linked is None:
            raise NotFoundError("Image not found")
        return linked

    async def remove(self, session_id: str, image_id: str) -> RemovalResult:
        """Remove an image and its related images, deleting their files."""
        if self.store.get(session_id) is None:
            raise NotFoundError(SESSION_NOT_FOUND)
        removed = self.store.remove_image(session_id, image_id)
        if removed is None:
            raise NotFoundError("Image not found")
        await self._discard_files(removed)
        session = self.store.get(session_id)
        return RemovalResult(
            removed_image_ids=[image.id for image in removed],
            remaining_images=len(session.images) if session else 0,
        )

    async def read_original(self, session_id: str, image_id: str) -> bytes:
        """Return the stored original JPEG."""
        image = self._require_image(session_id, image_id)
        data = await self.storage.load(image.storage_path)
        if data is None:
            raise NotFoundError("Image file not found")
        return data

    async def read_thumbnail(self, session_id: str, image_id: str) -> bytes:
        """Return the stored thumbnail JPEG."""
        image = self._require_image(session_id, image_id)
        data = await self.storage.load(image.thumbnail_path)
        if data is None:
            raise NotFoundError("Thumbnail not found")
        return data

    async def delete_session(self, session_id: str) -> None:
        """Delete a session and its stored files."""
        session = self.store.get(session_id)
        if session is None or not self.store.delete(session_id):
            raise NotFoundError(SESSION_NOT_FOUND)
        await self._discard_files(session.images)
        _logger.info("Session deleted: id=%s", session_id)

    def _require_image(self, session_id: str, image_id: str) -> Image:
        session = self.store.get(session_id)
        if session is None:
            raise NotFoundError(SESSION_NOT_FOUND)
        image = session.find_image(image_id)
        if image is None:
            raise NotFoundError("Image not found")
        return image

    async def _discard_files(self, images: list[Image]) -> None:
        """Delete stored files; missing files or storage errors are logged."""
        for image in images:
            for path in (image.storage_path, image.thumbnail_path):
                try:
                    await self.storage.delete(path)
                except Exception:
                    _logger.warning("Failed to delete stored file: path=%s", path)


def _is_allowed_type(content_type: str | None, filename: str) -> bool:
    if content_type and content_type.lower() in ALLOWED_CONTENT_TYPES:
        return True
    return filename.lower().endswith(".heic")
