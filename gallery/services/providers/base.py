from __future__ import annotations

import json
from typing import Any, Dict, Optional

import httpx


class ProviderApiError(RuntimeError):
    pass


def provider_client(
    timeout_s: float,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    timeout = httpx.Timeout(timeout_s, connect=10.0)
    return httpx.AsyncClient(timeout=timeout, transport=transport, follow_redirects=True)


def safe_json(resp: httpx.Response, *, provider: str) -> Any:
    text = (resp.text or "").strip()
    if not text:
        raise ProviderApiError(f"{provider}: EMPTY_BODY")
    try:
        return resp.json()
    except json.JSONDecodeError as e:
        raise ProviderApiError(f"{provider}: INVALID_JSON: {str(e)} body={text[:200]}") from e


def raise_for_provider_status(resp: httpx.Response, *, provider: str) -> None:
    if resp.status_code < 400:
        return
    body = ""
    try:
        body = resp.text
    except Exception:
        body = "<unreadable body>"
    raise ProviderApiError(f"{provider} API error: {resp.status_code} - {body[:2000]}")


def require_key(value: Optional[str], name: str) -> str:
    key = (value or "").strip()
    if not key:
        raise ProviderApiError(f"{name} is not configured")
    return key


def as_dict(obj: Any) -> Dict[str, Any]:
    return obj if isinstance(obj, dict) else {}
