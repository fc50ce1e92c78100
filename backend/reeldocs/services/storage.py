"""
Object storage for uploaded videos.

Backends:
- LocalStorage: files under a directory, signed URLs are file:// URLs
- SupabaseStorage: Supabase Storage REST API over httpx

Example:
    storage = create_storage(settings)
    await storage.upload("org/project/video.mp4", data)
    url = await storage.get_signed_read_url("org/project/video.mp4")
"""

import asyncio
import logging
from pathlib import Path
from typing import Protocol, runtime_checkable
from urllib.parse import quote

import httpx

from reeldocs.config import Settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """
    Raised when a storage operation fails.

    Attributes:
        operation: Storage operation name (upload, sign, remove, download)
        path: Object path
    """

    def __init__(self, message: str, operation: str, path: str | None = None):
        self.operation = operation
        self.path = path
        super().__init__(message)


@runtime_checkable
class StorageClient(Protocol):
    """Object storage used by the API and the extract stage."""

    async def get_signed_read_url(self, path: str, expires_in: int | None = None) -> str:
        """Return a time-limited URL to read the object."""
        ...

    async def upload(self, path: str, data: bytes, content_type: str = "video/mp4") -> None:
        """Store object bytes, replacing any existing object."""
        ...

    async def remove(self, path: str) -> None:
        """Delete the object; missing objects are ignored."""
        ...

    async def close(self) -> None:
        """Release resources."""
        ...


class LocalStorage:
    """
    Filesystem-backed storage.

    Objects live under ``root``; object paths may not escape it.
    """

    def __init__(self, root: Path):
        self.root = root.resolve()

    def _resolve(self, path: str) -> Path:
        target = (self.root / path.lstrip("/")).resolve()
        if self.root != target and self.root not in target.parents:
            raise StorageError(f"Path escapes storage root: {path}", "resolve", path)
        return target

    async def get_signed_read_url(self, path: str, expires_in: int | None = None) -> str:
        target = self._resolve(path)
        if not target.exists():
            raise StorageError(f"Object not found: {path}", "sign", path)
        return target.as_uri()

    async def upload(self, path: str, data: bytes, content_type: str = "video/mp4") -> None:
        target = self._resolve(path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        await asyncio.to_thread(_write)
        logger.info(f"Stored {len(data)} bytes at {path}")

    async def remove(self, path: str) -> None:
        target = self._resolve(path)
        await asyncio.to_thread(target.unlink, True)
        logger.info(f"Removed {path}")

    async def close(self) -> None:
        pass


class SupabaseStorage:
    """
    Supabase Storage REST client.

    Uses the service key, so bucket policies do not apply.
    """

    def __init__(
        self,
        base_url: str,
        service_key: str,
        bucket: str,
        signed_url_ttl: int = 3600,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.bucket = bucket
        self.signed_url_ttl = signed_url_ttl
        self.http_client = http_client or httpx.AsyncClient(
            timeout=httpx.Timeout(60.0, read=600.0),
            headers={"Authorization": f"Bearer {service_key}", "apikey": service_key},
        )

    def _object_url(self, kind: str, path: str) -> str:
        return f"{self.base_url}/storage/v1/object/{kind}{self.bucket}/{quote(path.lstrip('/'))}"

    async def get_signed_read_url(self, path: str, expires_in: int | None = None) -> str:
        try:
            response = await self.http_client.post(
                self._object_url("sign/", path),
                json={"expiresIn": expires_in or self.signed_url_ttl},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise StorageError(f"Failed to sign URL for {path}: {e}", "sign", path) from e

        signed = response.json().get("signedURL") or response.json().get("signedUrl")
        if not signed:
            raise StorageError(f"No signed URL returned for {path}", "sign", path)
        if signed.startswith("http"):
            return signed
        return f"{self.base_url}/storage/v1{signed}"

    async def upload(self, path: str, data: bytes, content_type: str = "video/mp4") -> None:
        try:
            response = await self.http_client.post(
                self._object_url("", path),
                content=data,
                headers={"Content-Type": content_type, "x-upsert": "true"},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise StorageError(f"Failed to upload {path}: {e}", "upload", path) from e
        logger.info(f"Uploaded {len(data)} bytes to {self.bucket}/{path}")

    async def remove(self, path: str) -> None:
        try:
            response = await self.http_client.request(
                "DELETE",
                f"{self.base_url}/storage/v1/object/{self.bucket}",
                json={"prefixes": [path.lstrip("/")]},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise StorageError(f"Failed to remove {path}: {e}", "remove", path) from e
        logger.info(f"Removed {self.bucket}/{path}")

    async def close(self) -> None:
        await self.http_client.aclose()


def create_storage(settings: Settings) -> StorageClient:
    """
    Build the configured storage backend.

    Raises:
        ValueError: If the backend is unknown or misconfigured
    """
    if settings.storage_backend == "local":
        return LocalStorage(settings.storage_dir)

    if settings.storage_backend == "supabase":
        if not settings.supabase_url or not settings.supabase_service_key:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_KEY are required for supabase storage")
        return SupabaseStorage(
            base_url=settings.supabase_url,
            service_key=settings.supabase_service_key,
            bucket=settings.storage_bucket,
            signed_url_ttl=settings.signed_url_ttl,
        )

    raise ValueError(f"Unknown storage backend: {settings.storage_backend}")


async def download(url: str, http_client: httpx.AsyncClient | None = None) -> bytes:
    """
    Fetch object bytes from a signed URL.

    file:// URLs (LocalStorage) are read from disk.

    Raises:
        StorageError: If the download fails
    """
    if url.startswith("file://"):
        path = Path(httpx.URL(url).path)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}", "download", str(path)) from e

    owns_client = http_client is None
    client = http_client or httpx.AsyncClient(timeout=httpx.Timeout(60.0, read=600.0))
    try:
        response = await client.get(url, follow_redirects=True)
        response.raise_for_status()
        return response.content
    except httpx.HTTPError as e:
        raise StorageError(f"Failed to download video from storage: {e}", "download") from e
    finally:
        if owns_client:
            await client.aclose()
