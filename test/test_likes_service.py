import pytest

from gallery.domain.enums import MediaKind
from gallery.errors import AuthRequired, NotFound
from gallery.services.likes_service import LikesService


@pytest.fixture
def track(media_repo, session_b):
    return media_repo.add(MediaKind.music, user_id=session_b.user_id, title="Night Drive", likes_count=0)


@pytest.mark.asyncio
async def test_even_number_of_toggles_restores_state(likes_repo, track, session_a):
    svc = LikesService(likes_repo)

    states = [await svc.toggle(MediaKind.music, track.id, session_a) for _ in range(4)]

    assert [s.liked for s in states] == [True, False, True, False]
    assert [s.likes_count for s in states] == [1, 0, 1, 0]
    assert await svc.is_liked(MediaKind.music, track.id, session_a) is False


@pytest.mark.asyncio
async def test_toggle_without_session_mutates_nothing(likes_repo, track):
    svc = LikesService(likes_repo)

    with pytest.raises(AuthRequired) as exc:
        await svc.toggle(MediaKind.music, track.id, None)

    assert exc.value.to_dict()["redirect"] == "/auth"
    assert likes_repo.likes == set()
    assert track.likes_count == 0


@pytest.mark.asyncio
async def test_set_liked_is_idempotent(likes_repo, track, session_a, session_b):
    svc = LikesService(likes_repo)

    await svc.set_liked(MediaKind.music, track.id, session_a, True)
    again = await svc.set_liked(MediaKind.music, track.id, session_a, True)
    other = await svc.set_liked(MediaKind.music, track.id, session_b, True)

    assert again.likes_count == 1
    assert other.likes_count == 2

    await svc.set_liked(MediaKind.music, track.id, session_a, False)
    gone = await svc.set_liked(MediaKind.music, track.id, session_a, False)
    assert gone.liked is False
    assert gone.likes_count == 1


@pytest.mark.asyncio
async def test_like_missing_media(likes_repo, session_a):
    svc = LikesService(likes_repo)

    with pytest.raises(NotFound):
        await svc.toggle(MediaKind.video, "00000000-0000-0000-0000-000000000000", session_a)


@pytest.mark.asyncio
async def test_anonymous_is_never_liked(likes_repo, track):
    assert await LikesService(likes_repo).is_liked(MediaKind.music, track.id, None) is False
