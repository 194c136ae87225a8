from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

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

logger = logging.getLogger("suno")

COMPLETE = "complete"


class SunoClient:
    """
    Music generation.

    submit: POST SUNO_GENERATE_URL -> list of clips (one id per clip)
    status: GET SUNO_STATUS_URL?ids=<first clip id> -> list of clips
    """

    provider_name = "suno"

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.SUNO_API_KEY
        self.generate_url = settings.SUNO_GENERATE_URL
        self.status_url = settings.SUNO_STATUS_URL
        self.timeout = settings.PROVIDER_TIMEOUT_SECONDS
        self.transport = transport

    async def generate(self, prompt: str) -> List[str]:
        key = require_key(self.api_key, "SUNO_API_KEY")
        payload = {"prompt": prompt, "make_instrumental": False, "wait_audio": False}
        headers = {"Authorization": f"Bearer {key}", "Content-Type": "application/json"}

        async with provider_client(self.timeout, self.transport) as client:
            r = await client.post(self.generate_url, headers=headers, json=payload)

        logger.info("suno_generate_response", extra={"status_code": r.status_code})
        raise_for_provider_status(r, provider="Suno")

        data = safe_json(r, provider="Suno")
        clips = data if isinstance(data, list) else as_dict(data).get("clips") or []
        clip_ids = [str(c.get("id")) for c in clips if isinstance(c, dict) and c.get("id")]
        if not clip_ids:
            raise ProviderApiError(f"Suno generate returned no clip ids: {str(data)[:200]}")
        return clip_ids

    async def check(self, clip_ids: List[str]) -> Dict[str, Any]:
        """
        Only the first clip is tracked.

        Returns {status: "complete", audioUrl, title, imageUrl} once done,
        otherwise {status: <provider status or "generating">}.
        """
        key = require_key(self.api_key, "SUNO_API_KEY")
        if not clip_ids:
            raise ProviderApiError("clipIds is required")
        clip_id = clip_ids[0]

        async with provider_client(self.timeout, self.transport) as client:
            r = await client.get(self.status_url, headers={"api-key": key}, params={"ids": clip_id})

        raise_for_provider_status(r, provider="Suno")
        data = safe_json(r, provider="Suno")
        clips = data if isinstance(data, list) else as_dict(data).get("clips") or []
        clip = as_dict(clips[0]) if clips else {}

        status = str(clip.get("status") or "").strip() or "generating"
        if status == COMPLETE:
            return {
                "status": COMPLETE,
                "audioUrl": clip.get("audio_url"),
                "title": clip.get("title"),
                "imageUrl": clip.get("image_url"),
            }
        return {"status": status}
