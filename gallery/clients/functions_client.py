from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import httpx

from gallery.config import settings
from gallery.errors import RemoteCallFailed

logger = logging.getLogger("functions_client")


def _client(
    timeout_s: float,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    timeout = httpx.Timeout(timeout_s, connect=10.0)
    return httpx.AsyncClient(timeout=timeout, transport=transport, follow_redirects=True)


def _raise_for_status_with_body(resp: httpx.Response, *, name: str) -> None:
    if resp.status_code < 400:
        return
    detail: Any = None
    try:
        detail = resp.json()
    except (json.JSONDecodeError, ValueError):
        detail = resp.text[:2000]
    message = detail.get("error") if isinstance(detail, dict) and detail.get("error") else str(detail)
    raise RemoteCallFailed(str(message), function=name, status_code=resp.status_code)


class FunctionsClient:
    """
    Calls the proxy functions (/functions/<name>) over HTTP.

    A transport failure, a non-2xx reply, an unreadable body and an `{error}`
    reply all surface as RemoteCallFailed.
    """

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        access_token: Optional[str] = None,
        timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = (base_url or settings.FUNCTIONS_BASE_URL).rstrip("/")
        self.access_token = access_token
        self.timeout_s = timeout_s or settings.FUNCTIONS_TIMEOUT_SECONDS
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        h = {"Content-Type": "application/json"}
        if self.access_token:
            h["Authorization"] = f"Bearer {self.access_token}"
        return h

    async def invoke(self, name: str, body: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.base_url}/{name}"
        try:
            async with _client(self.timeout_s, self.transport) as client:
                r = await client.post(url, headers=self._headers(), json=body)
        except httpx.HTTPError as e:
            logger.warning("function_call_transport_error", extra={"function": name, "error": str(e)})
            raise RemoteCallFailed(f"{name}: {e.__class__.__name__}", function=name) from e

        _raise_for_status_with_body(r, name=name)

        try:
            data = r.json()
        except (json.JSONDecodeError, ValueError) as e:
            raise RemoteCallFailed(f"{name}: invalid_json", function=name) from e

        if not isinstance(data, dict):
            raise RemoteCallFailed(f"{name}: unexpected_response", function=name)

        # `{error}` without a status is a failed call; a status reply may carry
        # the provider's own error text alongside it.
        if data.get("error") and "status" not in data:
            raise RemoteCallFailed(str(data["error"]), function=name)

        return data
