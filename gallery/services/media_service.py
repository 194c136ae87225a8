from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional, Tuple

import httpx

from gallery.config import settings
from gallery.domain.enums import MediaKind, SortOption
from gallery.domain.models import AuthorView, FeedEntry, MediaDetail, MediaItem, Profile, PublishIn, Session
from gallery.domain.tables import table_for
from gallery.domain.validators import normalize_tags, optional_text, validate_title, validate_upload
from gallery.errors import AuthRequired, NotAuthorized, NotFound, RemoteCallFailed
from gallery.repos.likes_repo import LikesRepo
from gallery.repos.media_repo import MediaRepo
from gallery.repos.profiles_repo import ProfilesRepo
from gallery.services.search import filter_media, share_links, sort_media
from gallery.services.storage_service import (
    StorageProvider,
    build_storage_path,
    file_ext,
    get_storage,
    remove_best_effort,
)

logger = logging.getLogger("media_service")


def _author(profile: Optional[Profile]) -> Optional[AuthorView]:
    if profile is None:
        return None
    return AuthorView(username=profile.username, full_name=profile.full_name, avatar_url=profile.avatar_url)


def _require(session: Optional[Session]) -> Session:
    if session is None:
        raise AuthRequired()
    return session


def _decode_data_url(url: str) -> Tuple[bytes, Optional[str]]:
    header, _, payload = url.partition(",")
    content_type = header[5:].split(";", 1)[0] or None
    if ";base64" not in header:
        raise RemoteCallFailed("unsupported_data_url")
    try:
        return base64.b64decode(payload), content_type
    except ValueError as e:
        raise RemoteCallFailed("invalid_data_url") from e


@dataclass
class DownloadStream:
    filename: str
    content_type: str
    response: httpx.Response
    client: httpx.AsyncClient

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self.response.aiter_bytes():
                yield chunk
        finally:
            await self.response.aclose()
            await self.client.aclose()


class MediaService:
    """
    Feed, detail, upload, publish, delete and download for images, videos and music.

    Rows live in Postgres (MediaRepo), files in object storage. Deletes remove
    the row first (owner-scoped in SQL) and the file afterwards, best-effort.
    """

    def __init__(
        self,
        media: MediaRepo,
        profiles: ProfilesRepo,
        likes: LikesRepo,
        *,
        storage: StorageProvider = get_storage,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.media = media
        self.profiles = profiles
        self.likes = likes
        self._storage = storage
        self._transport = transport

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_feed(self, kind: MediaKind, q: Optional[str] = None) -> List[FeedEntry]:
        items = filter_media(await self.media.list_all(kind), q)
        authors = await self.profiles.get_many(i.user_id for i in items)
        return [FeedEntry(item=i, author=_author(authors.get(i.user_id))) for i in items]

    async def list_mine(
        self,
        kind: MediaKind,
        session: Optional[Session],
        sort: SortOption = SortOption.newest,
        q: Optional[str] = None,
    ) -> List[MediaItem]:
        s = _require(session)
        items = await self.media.list_by_user(kind, s.user_id)
        return sort_media(filter_media(items, q), sort)

    async def get_item(self, kind: MediaKind, media_id: str) -> MediaItem:
        item = await self.media.get(kind, media_id)
        if item is None:
            raise NotFound(f"{MediaKind(kind).value}_not_found")
        return item

    async def get_detail(self, kind: MediaKind, media_id: str, session: Optional[Session] = None) -> MediaDetail:
        item = await self.get_item(kind, media_id)
        author = await self.profiles.get(item.user_id)
        liked = False
        if session is not None:
            liked = await self.likes.is_liked(kind, media_id, session.user_id)
        return MediaDetail(
            item=item,
            author=_author(author),
            liked=liked,
            share=share_links(item.media_url, item.title, kind),
        )

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete(self, kind: MediaKind, media_id: str, session: Optional[Session]) -> MediaItem:
        s = _require(session)
        item = await self.get_item(kind, media_id)
        if item.user_id != s.user_id:
            logger.warning(
                "delete_not_owner",
                extra={"kind": MediaKind(kind).value, "media_id": media_id, "user_id": s.user_id},
            )
            raise NotAuthorized("not_owner")

        deleted = await self.media.delete_owned(kind, media_id, s.user_id)
        if deleted is None:
            raise NotFound(f"{MediaKind(kind).value}_not_found")

        t = table_for(kind)
        await remove_best_effort(self._storage, t.container, deleted.storage_path, reason="media_deleted")
        logger.info("media_deleted", extra={"kind": t.kind.value, "media_id": media_id})
        return deleted

    # ------------------------------------------------------------------
    # Upload / publish
    # ------------------------------------------------------------------

    async def upload(
        self,
        kind: MediaKind,
        session: Optional[Session],
        *,
        filename: Optional[str],
        content_type: Optional[str],
        data: bytes,
        title: str,
        description: Optional[str] = None,
        tags: Optional[List[str]] = None,
    ) -> MediaItem:
        s = _require(session)
        t = table_for(kind)
        title = validate_title(title)
        clean_tags = normalize_tags(tags)
        validate_upload(t.kind, content_type, len(data or b""), clean_tags)

        path = build_storage_path(user_id=s.user_id, ext=file_ext(filename, t.default_ext))
        return await self._store_and_insert(
            t.kind,
            s,
            data=data,
            storage_path=path,
            content_type=content_type or t.default_content_type,
            title=title,
            description=optional_text(description),
            tags=clean_tags,
        )

    async def publish(self, kind: MediaKind, session: Optional[Session], body: PublishIn) -> MediaItem:
        """Save a generated file: download it, store it, insert the row."""
        s = _require(session)
        t = table_for(kind)
        title = validate_title(body.title)
        source = (body.source_url or "").strip()
        if not source:
            raise RemoteCallFailed("source_url_required")

        data, content_type = await self._fetch(source)
        if not data:
            raise RemoteCallFailed("empty_download")

        path = build_storage_path(user_id=s.user_id, ext=t.default_ext)
        return await self._store_and_insert(
            t.kind,
            s,
            data=data,
            storage_path=path,
            content_type=t.default_content_type if not t.accepts(content_type or "") else content_type,
            title=title,
            description=optional_text(body.description),
            prompt=optional_text(body.prompt),
            tags=normalize_tags(body.tags),
            cover_url=optional_text(body.cover_url),
        )

    async def _store_and_insert(
        self,
        kind: MediaKind,
        session: Session,
        *,
        data: bytes,
        storage_path: str,
        content_type: str,
        title: str,
        description: Optional[str],
        prompt: Optional[str] = None,
        tags: Optional[List[str]] = None,
        cover_url: Optional[str] = None,
    ) -> MediaItem:
        t = table_for(kind)
        try:
            uploaded = await self._storage().upload(t.container, storage_path, data, content_type=content_type)
        except Exception as e:
            logger.warning("upload_failed", extra={"kind": t.kind.value, "storage_path": storage_path, "error": str(e)})
            raise RemoteCallFailed("upload_failed") from e

        try:
            item = await self.media.insert(
                t.kind,
                user_id=session.user_id,
                title=title,
                description=description,
                media_url=uploaded.public_url,
                storage_path=uploaded.storage_path,
                prompt=prompt,
                tags=tags,
                cover_url=cover_url,
            )
        except Exception as e:
            logger.warning("insert_failed", extra={"kind": t.kind.value, "storage_path": uploaded.storage_path, "error": str(e)})
            await remove_best_effort(self._storage, t.container, uploaded.storage_path, reason="insert_failed")
            raise RemoteCallFailed("insert_failed") from e

        logger.info(
            "media_created",
            extra={"kind": t.kind.value, "media_id": item.id, "bytes": uploaded.bytes},
        )
        return item

    # ------------------------------------------------------------------
    # Remote files
    # ------------------------------------------------------------------

    def _http(self) -> httpx.AsyncClient:
        timeout = httpx.Timeout(settings.DOWNLOAD_TIMEOUT_SECONDS, connect=10.0)
        return httpx.AsyncClient(timeout=timeout, transport=self._transport, follow_redirects=True)

    async def _fetch(self, url: str) -> Tuple[bytes, Optional[str]]:
        if url.startswith("data:"):
            return _decode_data_url(url)
        try:
            async with self._http() as client:
                r = await client.get(url)
        except httpx.HTTPError as e:
            raise RemoteCallFailed(f"download_failed: {e.__class__.__name__}") from e
        if r.status_code >= 400:
            raise RemoteCallFailed("download_failed", status_code=r.status_code)
        return r.content, r.headers.get("content-type")

    async def download(self, kind: MediaKind, media_id: str) -> DownloadStream:
        item = await self.get_item(kind, media_id)
        t = table_for(kind)
        ext = file_ext(item.storage_path, t.default_ext)
        filename = f"{item.title or t.kind.value}.{ext}"

        client = self._http()
        try:
            request = client.build_request("GET", item.media_url)
            response = await client.send(request, stream=True)
        except httpx.HTTPError as e:
            await client.aclose()
            raise RemoteCallFailed(f"download_failed: {e.__class__.__name__}") from e

        if response.status_code >= 400:
            await response.aclose()
            await client.aclose()
            raise RemoteCallFailed("download_failed", status_code=response.status_code)

        return DownloadStream(
            filename=filename,
            content_type=response.headers.get("content-type") or t.default_content_type,
            response=response,
            client=client,
        )
