from typing import Protocol
from pathlib import Path
from urllib.parse import unquote, urlparse
import logging
import os

import aiofiles
import httpx

from ragdesk.core.exceptions import ContentDownloadError

logger = logging.getLogger(__name__)


class StorageClient(Protocol):
    """Protocol for the object storage that holds uploaded files"""

    async def presign_download_url(self, storage_ref: str, ttl_seconds: int) -> str:
        """Return a time-limited URL from which the stored file can be fetched"""
        ...

    async def delete_stored_object(self, storage_ref: str) -> None:
        """Remove a stored file"""
        ...


class LocalFileStorage:
    """Local filesystem implementation of StorageClient"""

    def __init__(self, upload_dir: str):
        self.upload_dir = Path(upload_dir)

    def _resolve(self, storage_ref: str) -> Path:
        if storage_ref.startswith("file://"):
            return Path(unquote(urlparse(storage_ref).path))
        path = Path(storage_ref)
        return path if path.is_absolute() else self.upload_dir / path

    async def presign_download_url(self, storage_ref: str, ttl_seconds: int) -> str:
        # Local files never expire; the TTL only matters for remote object stores.
        return self._resolve(storage_ref).resolve().as_uri()

    async def delete_stored_object(self, storage_ref: str) -> None:
        path = self._resolve(storage_ref)
        try:
            if path.exists():
                os.remove(path)
        except OSError as e:
            logger.error(f"Failed to delete stored file {path}: {e}")
            raise


async def fetch_bytes(url: str, timeout: float = 60.0) -> bytes:
    """
    Download the content behind a presigned URL.

    Args:
        url: http(s) URL or file:// URL
        timeout: Request timeout in seconds

    Returns:
        Raw file content

    Raises:
        ContentDownloadError: If the content cannot be fetched
    """
    parsed = urlparse(url)
    try:
        if parsed.scheme == "file":
            async with aiofiles.open(unquote(parsed.path), "rb") as f:
                return await f.read()

        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.content
    except httpx.HTTPStatusError as e:
        raise ContentDownloadError(f"Failed to download document: {e.response.reason_phrase}") from e
    except (httpx.HTTPError, OSError) as e:
        raise ContentDownloadError(f"Failed to download document: {e}") from e
