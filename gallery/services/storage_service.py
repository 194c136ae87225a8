from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional
from urllib.parse import quote

from azure.core.exceptions import ResourceNotFoundError
from azure.storage.blob import BlobServiceClient, ContentSettings, PublicAccess

from gallery.config import settings

logger = logging.getLogger("storage")


@dataclass(frozen=True)
class UploadResult:
    container: str
    storage_path: str
    public_url: str
    bytes: int


def _clean_path(p: str) -> str:
    """
    Normalize blob path:
    - no leading slash
    - normalize backslashes
    - remove '.', '..' segments
    """
    s = (p or "").strip().replace("\\", "/").lstrip("/")
    if not s:
        return ""
    segments = []
    for seg in s.split("/"):
        seg = (seg or "").strip()
        if not seg or seg in (".", ".."):
            continue
        segments.append(seg)
    return "/".join(segments)


def build_storage_path(*, user_id: str, ext: str, prefix: str = "") -> str:
    """
    Canonical object path for user content:
      {user_id}/{epoch_ms}.{ext}
    or, with a prefix (avatars):
      {prefix}/{user_id}-{epoch_ms}.{ext}
    """
    uid = _clean_path(str(user_id))
    if not uid:
        raise ValueError("user_id is required")
    e = (ext or "").lstrip(".").strip().lower() or "bin"
    ms = int(time.time() * 1000)
    if prefix:
        return _clean_path(f"{prefix}/{uid}-{ms}.{e}")
    return _clean_path(f"{uid}/{ms}.{e}")


def file_ext(filename: Optional[str], default: str) -> str:
    name = (filename or "").strip()
    if "." not in name:
        return default
    ext = name.rsplit(".", 1)[-1].strip().lower()
    return ext or default


class StorageService:
    """
    Object storage for gallery files, one public-read container per media kind
    (images / videos / music). Avatars live under images/avatars/.

    Requires:
      settings.AZURE_STORAGE_CONNECTION_STRING
    Optional:
      settings.STORAGE_PUBLIC_BASE_URL (CDN or custom domain in front of the account)
      settings.AZURE_STORAGE_AUTO_CREATE_CONTAINER (default True)
    """

    def __init__(self, *, connection_string: Optional[str] = None, public_base_url: Optional[str] = None):
        self.connection_string = (connection_string or settings.AZURE_STORAGE_CONNECTION_STRING or "").strip()
        if not self.connection_string:
            raise RuntimeError("missing_azure_storage_connection_string")

        self.blob_service = BlobServiceClient.from_connection_string(self.connection_string)
        parts = self._parse_connection_string(self.connection_string)
        self.account_name = (getattr(self.blob_service, "account_name", None) or parts.get("AccountName") or "").strip()

        base = (public_base_url or settings.STORAGE_PUBLIC_BASE_URL or "").strip()
        self.public_base_url = base.rstrip("/") if base else f"https://{self.account_name}.blob.core.windows.net"
        self._ensured: set[str] = set()

    @staticmethod
    def _parse_connection_string(cs: str) -> Dict[str, str]:
        out: Dict[str, str] = {}
        for item in (cs or "").split(";"):
            if "=" not in item:
                continue
            k, v = item.split("=", 1)
            k = (k or "").strip()
            v = (v or "").strip()
            if k:
                out[k] = v
        return out

    def _ensure_container_exists_best_effort(self, container: str) -> None:
        if container in self._ensured or not settings.AZURE_STORAGE_AUTO_CREATE_CONTAINER:
            return
        client = self.blob_service.get_container_client(container)
        try:
            client.get_container_properties()
        except ResourceNotFoundError:
            try:
                client.create_container(public_access=PublicAccess.BLOB)
            except Exception as e:
                logger.warning("container_create_failed", extra={"container": container, "error": str(e)})
        self._ensured.add(container)

    def public_url(self, container: str, storage_path: str) -> str:
        path = _clean_path(storage_path)
        if not path:
            raise ValueError("storage_path is required")
        return f"{self.public_base_url}/{container}/{quote(path)}"

    def _sync_upload(self, container: str, blob_name: str, data: bytes, content_type: str) -> None:
        self._ensure_container_exists_best_effort(container)
        blob_client = self.blob_service.get_blob_client(container=container, blob=blob_name)
        blob_client.upload_blob(
            data,
            overwrite=False,
            content_settings=ContentSettings(content_type=content_type),
        )

    def _sync_delete(self, container: str, blob_name: str) -> None:
        blob_client = self.blob_service.get_blob_client(container=container, blob=blob_name)
        try:
            blob_client.delete_blob()
        except ResourceNotFoundError:
            logger.info("blob_already_absent", extra={"container": container, "storage_path": blob_name})

    async def upload(
        self,
        container: str,
        storage_path: str,
        data: bytes,
        *,
        content_type: str = "application/octet-stream",
    ) -> UploadResult:
        if not isinstance(data, (bytes, bytearray)):
            raise TypeError("data must be bytes")
        blob_name = _clean_path(storage_path)
        if not blob_name:
            raise ValueError("invalid_blob_name")

        content_type = (content_type or "").strip() or "application/octet-stream"
        await asyncio.to_thread(self._sync_upload, container, blob_name, bytes(data), content_type)

        return UploadResult(
            container=container,
            storage_path=blob_name,
            public_url=self.public_url(container, blob_name),
            bytes=len(data),
        )

    async def remove(self, container: str, storage_paths: Iterable[str]) -> List[str]:
        """Delete objects; a missing object counts as removed. Returns removed paths."""
        removed: List[str] = []
        for p in storage_paths:
            blob_name = _clean_path(p)
            if not blob_name:
                continue
            await asyncio.to_thread(self._sync_delete, container, blob_name)
            removed.append(blob_name)
        return removed


_STORAGE: StorageService | None = None


def get_storage() -> StorageService:
    global _STORAGE
    if _STORAGE is None:
        _STORAGE = StorageService()
    return _STORAGE


StorageProvider = Callable[[], StorageService]


async def remove_best_effort(storage: StorageProvider, container: str, storage_path: Optional[str], *, reason: str) -> bool:
    """Remove one object; failures are logged as an orphaned file, never raised."""
    if not storage_path:
        return False
    try:
        await storage().remove(container, [storage_path])
        return True
    except Exception as e:
        logger.warning(
            "orphaned_file",
            extra={"container": container, "storage_path": storage_path, "reason": reason, "error": str(e)},
        )
        return False
