import os

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("JWT_AUDIENCE", "authenticated")
os.environ.setdefault("FUNCTIONS_BASE_URL", "http://functions.test/functions")
os.environ.setdefault("SUNO_API_KEY", "suno-key")
os.environ.setdefault("REPLICATE_API_KEY", "replicate-key")
os.environ.setdefault("REPLICATE_VIDEO_VERSION", "v-123")
os.environ.setdefault("OPENAI_API_KEY", "openai-key")

import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import pytest
from jose import jwt

from gallery.domain.enums import MediaKind
from gallery.domain.models import AdminContentRow, LikeState, MediaItem, Profile, Session
from gallery.services.storage_service import UploadResult

USER_A = "11111111-1111-1111-1111-111111111111"
USER_B = "22222222-2222-2222-2222-222222222222"
ADMIN = "33333333-3333-3333-3333-333333333333"

_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


class UniqueViolation(Exception):
    """Stands in for the driver error raised on a duplicate key."""

    sqlstate = "23505"


class FakeMediaRepo:
    def __init__(self, events: List[tuple]):
        self.rows: Dict[MediaKind, Dict[str, MediaItem]] = {k: {} for k in MediaKind}
        self.events = events
        self.fail_insert = False
        self._tick = 0

    def add(
        self,
        kind: MediaKind,
        *,
        user_id: str,
        title: str,
        description: Optional[str] = None,
        media_url: Optional[str] = None,
        storage_path: Optional[str] = None,
        likes_count: int = 0,
        prompt: Optional[str] = None,
        tags: Optional[List[str]] = None,
        cover_url: Optional[str] = None,
    ) -> MediaItem:
        self._tick += 1
        media_id = str(uuid.uuid4())
        item = MediaItem(
            id=media_id,
            kind=kind,
            user_id=user_id,
            title=title,
            description=description,
            media_url=media_url or f"https://storage.test/{kind.value}/{media_id}",
            storage_path=storage_path,
            likes_count=likes_count,
            created_at=_EPOCH + timedelta(minutes=self._tick),
            prompt=prompt,
            tags=list(tags or []),
            cover_url=cover_url,
        )
        self.rows[kind][media_id] = item
        return item

    async def list_all(self, kind):
        return sorted(self.rows[kind].values(), key=lambda i: i.created_at, reverse=True)

    async def list_by_user(self, kind, user_id):
        return [i for i in await self.list_all(kind) if i.user_id == user_id]

    async def get(self, kind, media_id):
        return self.rows[kind].get(media_id)

    async def insert(self, kind, *, user_id, title, description, media_url, storage_path, prompt=None, tags=None, cover_url=None):
        self.events.append(("insert_row", kind, storage_path))
        if self.fail_insert:
            raise RuntimeError("insert failed")
        return self.add(
            kind,
            user_id=user_id,
            title=title,
            description=description,
            media_url=media_url,
            storage_path=storage_path,
            prompt=prompt,
            tags=tags,
            cover_url=cover_url,
        )

    async def delete_owned(self, kind, media_id, user_id):
        self.events.append(("delete_row", kind, media_id))
        item = self.rows[kind].get(media_id)
        if item is None or item.user_id != user_id:
            return None
        return self.rows[kind].pop(media_id)

    async def delete_any(self, kind, media_id):
        self.events.append(("delete_row", kind, media_id))
        return self.rows[kind].pop(media_id, None)

    async def list_admin_rows(self, kind):
        return [
            AdminContentRow(id=i.id, title=i.title, user_id=i.user_id, created_at=i.created_at)
            for i in await self.list_all(kind)
        ]


class FakeLikesRepo:
    def __init__(self, media: FakeMediaRepo):
        self.media = media
        self.likes = set()

    async def is_liked(self, kind, media_id, user_id):
        return (kind, media_id, user_id) in self.likes

    async def set_liked(self, kind, media_id, user_id, liked):
        item = self.media.rows[kind].get(media_id)
        if item is None:
            return None
        key = (kind, media_id, user_id)
        if liked and key not in self.likes:
            self.likes.add(key)
            item.likes_count += 1
        elif not liked and key in self.likes:
            self.likes.discard(key)
            item.likes_count = max(item.likes_count - 1, 0)
        return LikeState(liked=liked, likes_count=item.likes_count)

    async def toggle(self, kind, media_id, user_id):
        if self.media.rows[kind].get(media_id) is None:
            return None
        return await self.set_liked(kind, media_id, user_id, (kind, media_id, user_id) not in self.likes)


class FakeProfilesRepo:
    def __init__(self):
        self.profiles: Dict[str, Profile] = {}

    def add(self, user_id, username, full_name=None, avatar_url=None) -> Profile:
        p = Profile(id=user_id, username=username, full_name=full_name, avatar_url=avatar_url, created_at=_EPOCH)
        self.profiles[user_id] = p
        return p

    async def get(self, user_id):
        return self.profiles.get(user_id)

    async def get_many(self, user_ids):
        return {u: self.profiles[u] for u in set(user_ids) if u in self.profiles}

    async def update(self, user_id, *, username, full_name):
        for other in self.profiles.values():
            if other.id != user_id and other.username == username:
                raise UniqueViolation('duplicate key value violates unique constraint "profiles_username_key"')
        p = self.profiles.get(user_id)
        if p is None:
            return None
        p = p.model_copy(update={"username": username, "full_name": full_name})
        self.profiles[user_id] = p
        return p

    async def set_avatar(self, user_id, avatar_url):
        p = self.profiles.get(user_id)
        if p is None:
            return None
        p = p.model_copy(update={"avatar_url": avatar_url})
        self.profiles[user_id] = p
        return p

    async def list_all(self):
        return list(self.profiles.values())

    async def delete(self, user_id):
        return self.profiles.pop(user_id, None) is not None


class FakeRolesRepo:
    def __init__(self, admins=()):
        self.admins = set(admins)

    async def has_role(self, user_id, role):
        return role == "admin" and user_id in self.admins

    async def is_admin(self, user_id):
        return user_id in self.admins


class FakeStorage:
    def __init__(self, events: List[tuple]):
        self.events = events
        self.objects: Dict[tuple, tuple] = {}
        self.removed: List[tuple] = []
        self.fail_remove = False
        self.fail_upload = False

    def public_url(self, container, storage_path):
        return f"https://storage.test/{container}/{storage_path}"

    async def upload(self, container, storage_path, data, *, content_type="application/octet-stream"):
        self.events.append(("upload_file", container, storage_path))
        if self.fail_upload:
            raise RuntimeError("storage down")
        self.objects[(container, storage_path)] = (bytes(data), content_type)
        return UploadResult(
            container=container,
            storage_path=storage_path,
            public_url=self.public_url(container, storage_path),
            bytes=len(data),
        )

    async def remove(self, container, storage_paths):
        paths = list(storage_paths)
        self.events.append(("remove_file", container, tuple(paths)))
        if self.fail_remove:
            raise RuntimeError("storage down")
        for p in paths:
            self.objects.pop((container, p), None)
            self.removed.append((container, p))
        return paths


@pytest.fixture
def events():
    """Ordered log of remote mutations issued by the fakes"""
    return []


@pytest.fixture
def media_repo(events):
    return FakeMediaRepo(events)


@pytest.fixture
def likes_repo(media_repo):
    return FakeLikesRepo(media_repo)


@pytest.fixture
def profiles_repo():
    repo = FakeProfilesRepo()
    repo.add(USER_A, "alice", "Alice A")
    repo.add(USER_B, "bob")
    return repo


@pytest.fixture
def roles_repo():
    return FakeRolesRepo(admins={ADMIN})


@pytest.fixture
def storage(events):
    return FakeStorage(events)


@pytest.fixture
def session_a():
    return Session(user_id=USER_A, email="alice@example.com", access_token="token-a")


@pytest.fixture
def session_b():
    return Session(user_id=USER_B, email="bob@example.com", access_token="token-b")


@pytest.fixture
def admin_session():
    return Session(user_id=ADMIN, email="admin@example.com", access_token="token-admin")


def make_token(user_id: str, email: str = "user@example.com") -> str:
    claims = {
        "sub": user_id,
        "email": email,
        "aud": "authenticated",
        "user_metadata": {"username": "tester"},
    }
    return jwt.encode(claims, os.environ["JWT_SECRET"], algorithm="HS256")


@pytest.fixture
def token_for():
    """Factory for HS256 access tokens accepted by the API"""
    return make_token


@pytest.fixture
def unique_violation():
    return UniqueViolation
