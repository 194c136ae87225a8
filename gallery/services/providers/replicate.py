from __future__ import annotations

import logging
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

logger = logging.getLogger("replicate")


class ReplicateClient:
    provider_name = "replicate"

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        version: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.REPLICATE_API_KEY
        self.version = version if version is not None else settings.REPLICATE_VIDEO_VERSION
        self.base = settings.REPLICATE_BASE_URL.rstrip("/")
        self.timeout = settings.PROVIDER_TIMEOUT_SECONDS
        self.transport = transport

    def _headers(self) -> Dict[str, str]:
        key = require_key(self.api_key, "REPLICATE_API_KEY")
        return {"Authorization": f"Token {key}", "Content-Type": "application/json"}

    async def create_prediction(self, prompt: str) -> str:
        headers = self._headers()
        version = (self.version or "").strip()
        if not version:
            raise ProviderApiError("REPLICATE_VIDEO_VERSION is not configured")

        payload = {"version": version, "input": {"prompt": prompt}}
        async with provider_client(self.timeout, self.transport) as client:
            r = await client.post(f"{self.base}/v1/predictions", headers=headers, json=payload)

        raise_for_provider_status(r, provider="Replicate")
        data = as_dict(safe_json(r, provider="Replicate"))
        prediction_id = data.get("id")
        if not prediction_id:
            raise ProviderApiError(f"Replicate prediction missing id. Response: {str(data)[:200]}")

        logger.info("replicate_prediction_created", extra={"prediction_id": prediction_id})
        return str(prediction_id)

    async def get_prediction(self, prediction_id: str) -> Dict[str, Any]:
        """Returns {status, output, error} as reported by the provider."""
        headers = self._headers()
        async with provider_client(self.timeout, self.transport) as client:
            r = await client.get(f"{self.base}/v1/predictions/{prediction_id}", headers=headers)

        raise_for_provider_status(r, provider="Replicate")
        data = as_dict(safe_json(r, provider="Replicate"))
        logger.info("replicate_prediction_status", extra={"prediction_id": prediction_id, "status": data.get("status")})
        return {
            "status": data.get("status"),
            "output": data.get("output"),
            "error": data.get("error"),
        }
