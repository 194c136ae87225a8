from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends

from gallery.api.deps import get_generations, get_optional_session
from gallery.domain.enums import MediaKind
from gallery.domain.models import GenerateIn, GenerationView, ImageGenerationOut, Session
from gallery.services.generation_service import GenerationService

router = APIRouter(prefix="/generations", tags=["generations"])


@router.post("/image", response_model=ImageGenerationOut)
async def generate_image(
    payload: GenerateIn,
    session: Optional[Session] = Depends(get_optional_session),
    gens: GenerationService = Depends(get_generations),
):
    return await gens.generate_image(payload.prompt, session)


@router.post("/{kind}", response_model=GenerationView, status_code=202)
async def start(
    kind: MediaKind,
    payload: GenerateIn,
    session: Optional[Session] = Depends(get_optional_session),
    gens: GenerationService = Depends(get_generations),
):
    """Starts a music or video generation; poll GET /generations/{id} for progress."""
    return await gens.start(kind, payload.prompt, session)


@router.get("/{job_id}", response_model=GenerationView)
async def get(
    job_id: str,
    session: Optional[Session] = Depends(get_optional_session),
    gens: GenerationService = Depends(get_generations),
):
    return gens.get(job_id, session)


@router.post("/{job_id}/cancel", response_model=GenerationView)
async def cancel(
    job_id: str,
    session: Optional[Session] = Depends(get_optional_session),
    gens: GenerationService = Depends(get_generations),
):
    return gens.cancel(job_id, session)
