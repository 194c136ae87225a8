from __future__ import annotations

from typing import List, Sequence
from urllib.parse import quote

from gallery.domain.enums import MediaKind, SortOption
from gallery.domain.models import MediaItem, Profile, ShareLinks


def _needle(query: str | None) -> str:
    return (query or "").strip().lstrip("#").strip().lower()


def filter_media(items: List[MediaItem], query: str | None) -> List[MediaItem]:
    """
    Case-insensitive substring match over title, description and tags.

    A blank query returns `items` itself, not a copy.
    """
    if not (query or "").strip():
        return items
    needle = _needle(query)
    if not needle:
        return items

    out: List[MediaItem] = []
    for item in items:
        haystack = [item.title or "", item.description or ""]
        haystack.extend(item.tags or [])
        if any(needle in h.lower() for h in haystack):
            out.append(item)
    return out


def filter_profiles(profiles: List[Profile], query: str | None) -> List[Profile]:
    if not (query or "").strip():
        return profiles
    needle = _needle(query)
    return [
        p
        for p in profiles
        if needle in (p.username or "").lower() or needle in (p.full_name or "").lower()
    ]


def sort_media(items: Sequence[MediaItem], sort: SortOption | str) -> List[MediaItem]:
    option = SortOption(sort)
    if option == SortOption.oldest:
        return sorted(items, key=lambda i: _ts(i))
    if option == SortOption.most_liked:
        return sorted(items, key=lambda i: i.likes_count, reverse=True)
    if option == SortOption.least_liked:
        return sorted(items, key=lambda i: i.likes_count)
    return sorted(items, key=lambda i: _ts(i), reverse=True)


def _ts(item: MediaItem) -> float:
    return item.created_at.timestamp() if item.created_at else 0.0


SHARE_LABELS = {
    MediaKind.image: "Gallery Image",
    MediaKind.video: "Gallery Video",
    MediaKind.music: "AI Generated Music",
}


def share_links(url: str, title: str, kind: MediaKind) -> ShareLinks:
    text = f'Check out "{title}" - {SHARE_LABELS[MediaKind(kind)]}'
    return ShareLinks(
        copy_url=url,
        twitter=f"https://twitter.com/intent/tweet?text={quote(text)}&url={quote(url, safe='')}",
        facebook=f"https://www.facebook.com/sharer/sharer.php?u={quote(url, safe='')}",
    )
