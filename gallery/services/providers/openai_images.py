from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from gallery.config import settings
from gallery.services.providers.base import (
    ProviderApiError,
    as_dict,
    provider_client,
    raise_for_provider_status,
    require_key,
    safe_json,
)


class OpenAIImageClient:
    provider_name = "openai_images"

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        # Allow override for proxies / gateways
        self.base_url = settings.OPENAI_BASE_URL.rstrip("/")
        self.model = settings.OPENAI_IMAGE_MODEL
        self.size = settings.OPENAI_IMAGE_SIZE
        self.timeout = settings.PROVIDER_TIMEOUT_SECONDS * 5
        self.transport = transport

    async def generate(self, prompt: str) -> str:
        """Returns a URL for the generated image (a data: URL when the model only returns base64)."""
        key = require_key(self.api_key, "OPENAI_API_KEY")
        data: Dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "size": self.size,
            "n": 1,
        }

        async with provider_client(self.timeout, self.transport) as client:
            r = await client.post(
                f"{self.base_url}/images/generations",
                headers={"Authorization": f"Bearer {key}"},
                json=data,
            )

        raise_for_provider_status(r, provider="OpenAI")
        j = as_dict(safe_json(r, provider="OpenAI"))
        items = j.get("data") or []
        first = as_dict(items[0]) if items else {}

        if first.get("url"):
            return str(first["url"])
        if first.get("b64_json"):
            return f"data:image/png;base64,{first['b64_json']}"
        raise ProviderApiError("OpenAI images returned no image")
