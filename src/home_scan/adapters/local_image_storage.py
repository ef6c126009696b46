"""Filesystem-backed image storage."""

import asyncio
import tempfile
from dataclasses import dataclass
from pathlib import Path

from home_scan.services.images import ImageStorage


def default_storage_dir() -> Path:
    """Return the default storage root under the system temp directory."""
    return Path(tempfile.gettempdir()) / "home-scan"


@dataclass
class LocalImageStorage(ImageStorage):
    """Stores images as files below a root directory."""

    root: Path

    @classmethod
    def create(cls, root: str | Path | None = None) -> "LocalImageStorage":
        """Create storage rooted at ``root`` or the default temp location."""
        return cls(root=Path(root) if root else default_storage_dir())

    async def save(self, path: str, data: bytes) -> None:
        """Write bytes, creating parent directories as needed."""
        await asyncio.to_thread(self._write, self._resolve(path), data)

    async def load(self, path: str) -> bytes | None:
        """Read bytes, returning ``None`` for a missing file."""
        target = self._resolve(path)
        try:
            return await asyncio.to_thread(target.read_bytes)
        except FileNotFoundError:
            return None

    async def delete(self, path: str) -> None:
        """Remove a file; a missing file is not an error."""
        await asyncio.to_thread(self._resolve(path).unlink, missing_ok=True)

    def _resolve(self, path: str) -> Path:
        root = self.root.resolve()
        target = (root / path).resolve()
        if not target.is_relative_to(root):
            raise ValueError(f"Storage path escapes root: {path}")
        return target

    @staticmethod
    def _write(target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
