from __future__ import annotations

from enum import Enum


class MediaKind(str, Enum):
    image = "image"
    video = "video"
    music = "music"


class GenerationStatus(str, Enum):
    running = "running"
    succeeded = "succeeded"
    failed = "failed"
    timeout = "timeout"
    cancelled = "cancelled"


class SortOption(str, Enum):
    newest = "newest"
    oldest = "oldest"
    most_liked = "most-liked"
    least_liked = "least-liked"


class ChangeType(str, Enum):
    insert = "INSERT"
    update = "UPDATE"
    delete = "DELETE"
