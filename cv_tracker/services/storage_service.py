"""
Object storage for application attachments.

Files live on the local filesystem under ``media_root`` and are addressed by
``users/{owner_id}/applications/{application_id}/{kind}/{filename}``. The
public URL of an object is ``{base_url}/{path}``; deleting takes that URL.
"""
import asyncio
from pathlib import Path
from typing import Optional, Tuple
from uuid import UUID
import logging

import aiofiles
import aiofiles.os

from cv_tracker.core.exceptions import UploadFailed
from cv_tracker.schemas.upload import FileCandidate
from .file_service import generate_unique_file_name

logger = logging.getLogger(__name__)


class StorageService:
    """Service for storing and deleting uploaded attachment files."""

    def __init__(self, root: str = "media", base_url: str = "/media", timeout: Optional[float] = 30.0):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.root.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def build_path(owner_id: str, application_id: UUID, kind: str, filename: str) -> str:
        """Object path of an attachment, relative to the storage root."""
        return f"users/{owner_id}/applications/{application_id}/{kind}/{filename}"

    def _resolve(self, path: str) -> Path:
        """Absolute file path for an object path, refusing anything outside the root."""
        full_path = (self.root / path).resolve()
        root = self.root.resolve()
        if root != full_path and root not in full_path.parents:
            raise ValueError(f"Path escapes storage root: {path}")
        return full_path

    def local_path(self, path: str) -> Optional[Path]:
        """Filesystem path of an existing object, or None."""
        try:
            file_path = self._resolve(path)
        except ValueError:
            return None
        return file_path if file_path.is_file() else None

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path}"

    def path_from_url(self, url: Optional[str]) -> Optional[str]:
        """
        Extract the object path from a public URL.

        Returns:
            The object path or None if the URL does not belong to this store
        """
        if not url:
            return None
        prefix = f"{self.base_url}/"
        if not url.startswith(prefix):
            return None
        return url[len(prefix):] or None

    async def put(self, path: str, content: bytes) -> str:
        """
        Write an object and return its public URL.

        Raises:
            UploadFailed: on any filesystem error or when the write times out
        """
        try:
            file_path = self._resolve(path)
            await asyncio.wait_for(self._write(file_path, content), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"Timed out writing {path} after {self.timeout}s")
            raise UploadFailed(f"Upload timed out after {self.timeout:g}s", original_error=e)
        except (OSError, ValueError) as e:
            logger.error(f"Error writing file {path}: {e}")
            raise UploadFailed(original_error=e)

        return self.url_for(path)

    async def _write(self, file_path: Path, content: bytes) -> None:
        await aiofiles.os.makedirs(file_path.parent, exist_ok=True)
        async with aiofiles.open(file_path, "wb") as f:
            await f.write(content)

    async def upload_attachment(
        self,
        owner_id: str,
        application_id: UUID,
        kind: str,
        file: FileCandidate
    ) -> Tuple[str, str]:
        """
        Store an attachment under a timestamped unique name.

        Returns:
            Tuple of (public URL, stored file name)
        """
        filename = generate_unique_file_name(file.file_name)
        path = self.build_path(owner_id, application_id, kind, filename)
        url = await self.put(path, file.content)
        logger.info(f"Stored {kind} attachment for application {application_id} ({file.size} bytes)")
        return url, filename

    async def delete(self, url: str) -> bool:
        """
        Delete the object behind a public URL.

        Returns:
            True if a file was removed, False if it was already gone

        Raises:
            UploadFailed: if the URL is not ours or the file cannot be removed
        """
        path = self.path_from_url(url)
        if path is None:
            raise UploadFailed(f"Not a storage URL: {url}")

        try:
            file_path = self._resolve(path)
            if not file_path.exists():
                return False
            await aiofiles.os.remove(file_path)
            return True
        except (OSError, ValueError) as e:
            logger.error(f"Error deleting file {path}: {e}")
            raise UploadFailed("Failed to delete file", original_error=e)

    async def read(self, url: str) -> Optional[bytes]:
        """
        Read an object back.

        Returns:
            File content as bytes or None if it doesn't exist
        """
        path = self.path_from_url(url)
        if path is None:
            return None
        file_path = self._resolve(path)
        if not file_path.exists():
            return None
        async with aiofiles.open(file_path, "rb") as f:
            return await f.read()
