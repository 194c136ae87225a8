from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from gallery.config import settings
from gallery.domain.enums import MediaKind


@dataclass(frozen=True)
class MediaTable:
    kind: MediaKind
    table: str
    like_table: str
    fk_column: str
    url_column: str
    container: str
    default_ext: str
    default_content_type: str
    allowed_content_types: Tuple[str, ...]
    allowed_prefix: str = ""
    extra_columns: Tuple[str, ...] = ()

    def accepts(self, content_type: str) -> bool:
        ct = (content_type or "").strip().lower()
        if self.allowed_content_types:
            return ct in self.allowed_content_types
        return bool(self.allowed_prefix) and ct.startswith(self.allowed_prefix)


MEDIA_TABLES = {
    MediaKind.image: MediaTable(
        kind=MediaKind.image,
        table="images",
        like_table="image_likes",
        fk_column="image_id",
        url_column="image_url",
        container=settings.IMAGES_CONTAINER,
        default_ext="png",
        default_content_type="image/png",
        allowed_content_types=("image/jpeg", "image/png", "image/webp"),
        extra_columns=("tags",),
    ),
    MediaKind.video: MediaTable(
        kind=MediaKind.video,
        table="videos",
        like_table="video_likes",
        fk_column="video_id",
        url_column="video_url",
        container=settings.VIDEOS_CONTAINER,
        default_ext="mp4",
        default_content_type="video/mp4",
        allowed_content_types=(),
        allowed_prefix="video/",
    ),
    MediaKind.music: MediaTable(
        kind=MediaKind.music,
        table="music",
        like_table="music_likes",
        fk_column="music_id",
        url_column="audio_url",
        container=settings.MUSIC_CONTAINER,
        default_ext="mp3",
        default_content_type="audio/mpeg",
        allowed_content_types=(),
        allowed_prefix="audio/",
        extra_columns=("cover_url",),
    ),
}


def table_for(kind: MediaKind | str) -> MediaTable:
    return MEDIA_TABLES[MediaKind(kind)]
