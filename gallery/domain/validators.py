from __future__ import annotations

from typing import Iterable, List, Optional

from gallery.domain.enums import MediaKind
from gallery.domain.tables import table_for
from gallery.errors import ValidationError

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 20


def validate_prompt(prompt: Optional[str]) -> str:
    p = (prompt or "").strip()
    if not p:
        raise ValidationError("prompt_required")
    return p


def validate_title(title: Optional[str]) -> str:
    t = (title or "").strip()
    if not t:
        raise ValidationError("title_required")
    return t


def optional_text(value: Optional[str]) -> Optional[str]:
    v = (value or "").strip()
    return v or None


def validate_username(username: Optional[str]) -> str:
    u = (username or "").strip()
    if not u:
        raise ValidationError("username_required")
    if len(u) < USERNAME_MIN_LENGTH or len(u) > USERNAME_MAX_LENGTH:
        raise ValidationError(
            "username_length",
            min_length=USERNAME_MIN_LENGTH,
            max_length=USERNAME_MAX_LENGTH,
        )
    return u


def validate_avatar(content_type: Optional[str], size: int, *, max_bytes: int) -> None:
    if not (content_type or "").lower().startswith("image/"):
        raise ValidationError("avatar_must_be_image")
    if size > max_bytes:
        raise ValidationError("avatar_too_large", max_bytes=max_bytes)


def normalize_tags(tags: Iterable[str] | None) -> List[str]:
    """Trim, drop empties and a leading '#', keep first occurrence order."""
    out: List[str] = []
    for raw in tags or []:
        t = str(raw or "").strip().lstrip("#").strip()
        if t and t not in out:
            out.append(t)
    return out


def validate_upload(kind: MediaKind, content_type: Optional[str], size: int, tags: List[str]) -> None:
    if size <= 0:
        raise ValidationError("file_required")
    table = table_for(kind)
    if not table.accepts(content_type or ""):
        raise ValidationError("unsupported_content_type", content_type=content_type)
    if kind == MediaKind.image and not tags:
        raise ValidationError("tag_required")


def validate_comment(text: Optional[str]) -> str:
    t = (text or "").strip()
    if not t:
        raise ValidationError("comment_required")
    return t
