from datetime import datetime, timezone

from gallery.domain.enums import MediaKind, SortOption
from gallery.domain.models import MediaItem, Profile
from gallery.services.search import filter_media, filter_profiles, share_links, sort_media


def _item(title, *, description=None, tags=(), likes=0, day=1):
    return MediaItem(
        id=f"id-{title}",
        kind=MediaKind.image,
        user_id="u1",
        title=title,
        description=description,
        media_url=f"https://cdn.test/{title}.png",
        likes_count=likes,
        created_at=datetime(2024, 1, day, tzinfo=timezone.utc),
        tags=list(tags),
    )


def test_filter_is_case_insensitive_substring_on_title():
    items = [_item("AI Rasm"), _item("Landscape")]

    out = filter_media(items, "ai")

    assert [i.title for i in out] == ["AI Rasm"]


def test_blank_query_returns_the_same_list():
    items = [_item("AI Rasm"), _item("Landscape")]

    assert filter_media(items, "") is items
    assert filter_media(items, "   ") is items
    assert filter_media(items, None) is items


def test_filter_matches_description_and_tags_with_hash_stripped():
    items = [
        _item("One", description="A quiet SUNSET over water"),
        _item("Two", tags=["sunset", "beach"]),
        _item("Three", tags=["city"]),
    ]

    assert [i.title for i in filter_media(items, "#sunset")] == ["One", "Two"]
    assert [i.title for i in filter_media(items, "CITY")] == ["Three"]


def test_filter_profiles_by_username_or_full_name():
    profiles = [
        Profile(id="1", username="alice", full_name="Alice Smith"),
        Profile(id="2", username="bob", full_name=None),
    ]

    assert [p.username for p in filter_profiles(profiles, "SMITH")] == ["alice"]
    assert [p.username for p in filter_profiles(profiles, "bo")] == ["bob"]
    assert filter_profiles(profiles, " ") is profiles


def test_sort_options():
    items = [_item("a", likes=5, day=1), _item("b", likes=1, day=3), _item("c", likes=9, day=2)]

    assert [i.title for i in sort_media(items, SortOption.newest)] == ["b", "c", "a"]
    assert [i.title for i in sort_media(items, SortOption.oldest)] == ["a", "c", "b"]
    assert [i.title for i in sort_media(items, "most-liked")] == ["c", "a", "b"]
    assert [i.title for i in sort_media(items, "least-liked")] == ["b", "a", "c"]


def test_share_links_encode_title_and_url():
    links = share_links("https://cdn.test/song 1.mp3", "My Song", MediaKind.music)

    assert links.copy_url == "https://cdn.test/song 1.mp3"
    assert links.twitter.startswith("https://twitter.com/intent/tweet?text=")
    assert "Check%20out%20%22My%20Song%22%20-%20AI%20Generated%20Music" in links.twitter
    assert "url=https%3A%2F%2Fcdn.test%2Fsong%201.mp3" in links.twitter
    assert links.facebook == "https://www.facebook.com/sharer/sharer.php?u=https%3A%2F%2Fcdn.test%2Fsong%201.mp3"


def test_share_text_follows_media_kind():
    image = share_links("https://cdn.test/a.png", "Sunset", MediaKind.image)
    video = share_links("https://cdn.test/a.mp4", "Clip", MediaKind.video)

    assert "Gallery%20Image" in image.twitter
    assert "Gallery%20Video" in video.twitter
    assert "Music" not in image.twitter + video.twitter
