from __future__ import annotations

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse, Response

from gallery.api.deps import get_openai_image_client, get_replicate_client, get_suno_client
from gallery.domain.models import MusicStatusBody, PromptBody, VideoStatusBody
from gallery.domain.validators import validate_prompt
from gallery.services.providers.openai_images import OpenAIImageClient
from gallery.services.providers.replicate import ReplicateClient
from gallery.services.providers.suno import SunoClient

logger = logging.getLogger("functions")

FUNCTIONS_PREFIX = "/functions"

router = APIRouter(prefix=FUNCTIONS_PREFIX, tags=["functions"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}

FUNCTION_NAMES = {
    "generate-image",
    "generate-music",
    "check-music-status",
    "generate-video",
    "check-video-status",
}


def _ok(body: Dict[str, Any]) -> JSONResponse:
    return JSONResponse(status_code=200, content=body, headers=CORS_HEADERS)


def _fail(name: str, exc: Exception) -> JSONResponse:
    logger.exception("function_failed", extra={"function": name})
    message = getattr(exc, "message", None) or str(exc) or exc.__class__.__name__
    return JSONResponse(status_code=500, content={"error": message}, headers=CORS_HEADERS)


@router.options("/{name}")
async def preflight(name: str):
    if name not in FUNCTION_NAMES:
        raise HTTPException(status_code=404, detail="function_not_found")
    return Response(content="ok", headers=CORS_HEADERS)


@router.post("/generate-image")
async def generate_image(request: Request, client: OpenAIImageClient = Depends(get_openai_image_client)):
    try:
        body = PromptBody.model_validate(await request.json())
        image_url = await client.generate(validate_prompt(body.prompt))
        return _ok({"imageUrl": image_url})
    except Exception as e:
        return _fail("generate-image", e)


@router.post("/generate-music")
async def generate_music(request: Request, client: SunoClient = Depends(get_suno_client)):
    try:
        body = PromptBody.model_validate(await request.json())
        clip_ids = await client.generate(validate_prompt(body.prompt))
        logger.info("music_submitted", extra={"clip_ids": clip_ids})
        return _ok({"clipIds": clip_ids, "status": "generating"})
    except Exception as e:
        return _fail("generate-music", e)


@router.post("/check-music-status")
async def check_music_status(request: Request, client: SunoClient = Depends(get_suno_client)):
    try:
        body = MusicStatusBody.model_validate(await request.json())
        return _ok(await client.check(body.clip_ids))
    except Exception as e:
        return _fail("check-music-status", e)


@router.post("/generate-video")
async def generate_video(request: Request, client: ReplicateClient = Depends(get_replicate_client)):
    try:
        body = PromptBody.model_validate(await request.json())
        prediction_id = await client.create_prediction(validate_prompt(body.prompt))
        return _ok({"predictionId": prediction_id})
    except Exception as e:
        return _fail("generate-video", e)


@router.post("/check-video-status")
async def check_video_status(request: Request, client: ReplicateClient = Depends(get_replicate_client)):
    try:
        body = VideoStatusBody.model_validate(await request.json())
        return _ok(await client.get_prediction(body.prediction_id))
    except Exception as e:
        return _fail("check-video-status", e)
