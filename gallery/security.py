from __future__ import annotations

from typing import Any, Dict

from jose import JWTError, jwt

from gallery.config import settings


def _strip_bearer(auth: str) -> str:
    s = (auth or "").strip()
    if not s:
        return ""
    if s.lower().startswith("bearer "):
        return s[7:].strip()
    return s


def decode_access_jwt(token: str) -> Dict[str, Any]:
    """
    Validate an access token issued by the auth backend.

    Input may be raw token or 'Bearer <token>'.
    """
    raw = _strip_bearer(token)
    if not raw:
        raise ValueError("invalid_token: empty")

    if not settings.JWT_SECRET:
        raise ValueError("invalid_token: JWT_SECRET not set")

    kwargs: Dict[str, Any] = {"algorithms": [settings.JWT_ALG]}
    if settings.JWT_AUDIENCE:
        kwargs["audience"] = settings.JWT_AUDIENCE
    else:
        kwargs["options"] = {"verify_aud": False}
    if settings.JWT_ISSUER:
        kwargs["issuer"] = settings.JWT_ISSUER

    try:
        return jwt.decode(raw, settings.JWT_SECRET, **kwargs)
    except JWTError as e:
        raise ValueError(f"invalid_token: {e}") from e
