"""Supabase Storage-backed image storage."""

import asyncio
import logging
from dataclasses import dataclass

from supabase import Client, StorageException

from home_scan.services.images import ImageStorage

_logger = logging.getLogger(__name__)


@dataclass
class SupabaseImageStorage(ImageStorage):
    """Stores images as objects in a Supabase Storage bucket."""

    client: Client
    bucket: str

    async def save(self, path: str, data: bytes) -> None:
        """Upload bytes, overwriting an existing object."""
        await asyncio.to_thread(
            self.client.storage.from_(self.bucket).upload,
            path,
            data,
            {"content-type": "image/jpeg", "upsert": "true"},
        )

    async def load(self, path: str) -> bytes | None:
        """Download bytes, returning ``None`` when the object is missing."""
        try:
            return await asyncio.to_thread(
                self.client.storage.from_(self.bucket).download, path
            )
        except StorageException:
            _logger.warning("Stored object not available: path=%s", path)
            return None

    async def delete(self, path: str) -> None:
        """Remove an object; removing a missing object is a no-op upstream."""
        await asyncio.to_thread(self.client.storage.from_(self.bucket).remove, [path])
