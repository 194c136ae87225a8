import re

import pytest

from gallery.domain.enums import MediaKind
from gallery.errors import AuthRequired, NotFound, RemoteCallFailed, UniqueConstraintViolation, ValidationError
from gallery.services.comment_service import CommentService, CommentStore
from gallery.services.profile_service import ProfileService, previous_avatar_path


@pytest.fixture
def svc(profiles_repo, storage):
    return ProfileService(profiles_repo, storage=lambda: storage)


@pytest.mark.asyncio
async def test_update_trims_and_nulls_empty_full_name(svc, session_a):
    profile = await svc.update_profile(session_a, username="  alice2 ", full_name="   ")

    assert profile.username == "alice2"
    assert profile.full_name is None


@pytest.mark.asyncio
@pytest.mark.parametrize("username, message", [("", "username_required"), ("  ", "username_required"), ("ab", "username_length"), ("x" * 21, "username_length")])
async def test_update_rejects_bad_usernames(svc, session_a, username, message):
    with pytest.raises(ValidationError) as exc:
        await svc.update_profile(session_a, username=username, full_name=None)
    assert exc.value.message == message


@pytest.mark.asyncio
async def test_duplicate_username_maps_to_unique_violation(svc, session_a):
    with pytest.raises(UniqueConstraintViolation) as exc:
        await svc.update_profile(session_a, username="bob", full_name=None)

    body = exc.value.to_dict()
    assert body["error"] == "unique_violation"
    assert body["field"] == "username"


@pytest.mark.asyncio
async def test_other_errors_propagate(profiles_repo, storage, session_a):
    async def broken(*args, **kwargs):
        raise RuntimeError("connection reset")

    profiles_repo.update = broken
    svc = ProfileService(profiles_repo, storage=lambda: storage)

    with pytest.raises(RuntimeError):
        await svc.update_profile(session_a, username="alice", full_name=None)


@pytest.mark.asyncio
async def test_avatar_must_be_small_image(svc, events, session_a):
    with pytest.raises(ValidationError) as exc:
        await svc.upload_avatar(session_a, filename="a.txt", content_type="text/plain", data=b"x")
    assert exc.value.message == "avatar_must_be_image"

    with pytest.raises(ValidationError) as exc:
        await svc.upload_avatar(session_a, filename="a.png", content_type="image/png", data=b"x" * (2 * 1024 * 1024 + 1))
    assert exc.value.message == "avatar_too_large"

    assert events == []


@pytest.mark.asyncio
async def test_avatar_replaces_previous_file(svc, profiles_repo, storage, events, session_a):
    profiles_repo.add(session_a.user_id, "alice", avatar_url="https://storage.test/images/avatars/old-1.png")

    profile = await svc.upload_avatar(session_a, filename="me.webp", content_type="image/webp", data=b"RIFF")

    assert ("images", "avatars/old-1.png") in storage.removed
    path = profile.avatar_url.split("/images/", 1)[1]
    assert re.fullmatch(rf"avatars/{session_a.user_id}-\d+\.webp", path)
    assert ("images", path) in storage.objects
    assert [e[0] for e in events] == ["upload_file", "remove_file"]


@pytest.mark.asyncio
async def test_failed_avatar_upload_keeps_previous_file(svc, profiles_repo, storage, session_a):
    old_url = "https://storage.test/images/avatars/old-1.png"
    profiles_repo.add(session_a.user_id, "alice", avatar_url=old_url)
    storage.fail_upload = True

    with pytest.raises(RemoteCallFailed):
        await svc.upload_avatar(session_a, filename="me.png", content_type="image/png", data=b"PNG")

    assert storage.removed == []
    assert profiles_repo.profiles[session_a.user_id].avatar_url == old_url


@pytest.mark.asyncio
async def test_profile_requires_session(svc):
    with pytest.raises(AuthRequired):
        await svc.get_profile(None)


def test_previous_avatar_path():
    assert previous_avatar_path(None) is None
    assert previous_avatar_path("https://x.test/images/avatars/u-1.png?v=2") == "avatars/u-1.png"


# -----------------------------------------------------------------------------
# Comments
# -----------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_comments_use_username_then_email(profiles_repo, media_repo, session_a):
    svc = CommentService(profiles_repo, media_repo, store=CommentStore())
    image = media_repo.add(MediaKind.image, user_id=session_a.user_id, title="Sunset")
    other = media_repo.add(MediaKind.image, user_id=session_a.user_id, title="Beach")
    del profiles_repo.profiles[session_a.user_id]

    await svc.add(image.id, session_a, "  first!  ")
    profiles_repo.add(session_a.user_id, "alice")
    await svc.add(image.id, session_a, "second")

    comments = svc.list(image.id)
    assert [(c.author, c.text) for c in comments] == [("alice@example.com", "first!"), ("alice", "second")]
    assert svc.list(other.id) == []


@pytest.mark.asyncio
async def test_comment_validation(profiles_repo, media_repo, session_a):
    svc = CommentService(profiles_repo, media_repo, store=CommentStore())
    image = media_repo.add(MediaKind.image, user_id=session_a.user_id, title="Sunset")

    with pytest.raises(ValidationError):
        await svc.add(image.id, session_a, "   ")
    with pytest.raises(AuthRequired):
        await svc.add(image.id, None, "hi")


@pytest.mark.asyncio
async def test_comment_on_unknown_image_is_rejected(profiles_repo, media_repo, session_a):
    store = CommentStore()
    svc = CommentService(profiles_repo, media_repo, store=store)
    clip = media_repo.add(MediaKind.video, user_id=session_a.user_id, title="Clip")

    with pytest.raises(NotFound):
        await svc.add("00000000-0000-0000-0000-000000000000", session_a, "hi")
    with pytest.raises(NotFound):
        await svc.add(clip.id, session_a, "hi")
    assert store.list(clip.id) == []
