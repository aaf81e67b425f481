"""
Disk-backed staging area for uploaded audio.

Every upload gets its own generated name so concurrent requests never
write to the same path. Files live only for the duration of one request.
"""

import logging
import re
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional
from uuid import uuid4

from starlette.concurrency import run_in_threadpool

from voice2text.config import get_settings

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class UploadedAudio:
    """An uploaded audio blob staged on disk."""

    storage_path: Path
    filename: str
    original_name: str
    mime_type: str
    size_bytes: int


class TemporaryFileStore:
    """Stages uploads under a single directory and deletes them on request."""

    def __init__(self, root: Path | str):
        self.root = Path(root)

    def generate_name(self, original_name: str) -> str:
        """Build a collision-free file name that keeps the original name readable."""
        base = Path(original_name or "").name
        safe = _UNSAFE_CHARS.sub("_", base).strip("._") or "audio"
        return f"{time.time_ns()}-{uuid4().hex[:8]}-{safe}"

    def _write(self, source: BinaryIO, destination: Path) -> int:
        self.root.mkdir(parents=True, exist_ok=True)
        with open(destination, "wb") as buffer:
            shutil.copyfileobj(source, buffer)
        return destination.stat().st_size

    async def save(
            self,
            source: BinaryIO,
            original_name: str,
            mime_type: Optional[str] = None,
    ) -> UploadedAudio:
        """
        Copy an upload stream to disk.

        Args:
            source: Readable binary stream of the upload
            original_name: Client-supplied file name
            mime_type: Client-supplied content type

        Returns:
            UploadedAudio describing the staged file
        """
        filename = self.generate_name(original_name)
        destination = self.root / filename

        try:
            size = await run_in_threadpool(self._write, source, destination)
        except Exception:
            await self.delete_path(destination)
            raise

        logger.info(f"[TempStore] Staged upload: {destination} ({size} bytes)")

        return UploadedAudio(
            storage_path=destination,
            filename=filename,
            original_name=original_name,
            mime_type=mime_type or "application/octet-stream",
            size_bytes=size,
        )

    async def read_bytes(self, audio: UploadedAudio) -> bytes:
        """Read the whole staged payload."""
        return await run_in_threadpool(audio.storage_path.read_bytes)

    def exists(self, audio: UploadedAudio) -> bool:
        return audio.storage_path.exists()

    async def delete(self, audio: UploadedAudio) -> bool:
        """Delete a staged upload. Never raises."""
        return await self.delete_path(audio.storage_path)

    async def delete_path(self, path: Path) -> bool:
        try:
            await run_in_threadpool(path.unlink, True)
        except Exception as e:
            logger.error(f"[TempStore] Failed to delete file: {path} ({e})")
            return False
        return True


# Singleton instance for dependency injection
_temp_store: TemporaryFileStore | None = None


def get_temp_store() -> TemporaryFileStore:
    """Dependency provider for the TemporaryFileStore."""
    global _temp_store
    if _temp_store is None:
        _temp_store = TemporaryFileStore(get_settings().upload_dir)
    return _temp_store
