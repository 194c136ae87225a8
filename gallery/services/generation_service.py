from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from gallery.clients.functions_client import FunctionsClient
from gallery.domain.enums import GenerationStatus, MediaKind
from gallery.domain.models import GenerationResult, GenerationView, ImageGenerationOut, Session
from gallery.domain.validators import validate_prompt
from gallery.errors import (
    AuthRequired,
    GalleryError,
    GenerationCancelled,
    GenerationTimeout,
    NotFound,
    RemoteCallFailed,
    ValidationError,
)
from gallery.services.job_poller import JOBS, CancelToken, JobPoller

logger = logging.getLogger("generation_service")

# Finished generations are kept this long so clients can read the result.
RETAIN_FINISHED_SECONDS = 3600.0

FunctionsFactory = Callable[[Optional[Session]], FunctionsClient]
PollerFactory = Callable[[FunctionsClient], JobPoller]


def _default_functions(session: Optional[Session]) -> FunctionsClient:
    return FunctionsClient(access_token=session.access_token if session else None)


@dataclass
class Generation:
    id: str
    kind: MediaKind
    prompt: str
    user_id: Optional[str]
    started_at: float
    status: GenerationStatus = GenerationStatus.running
    message: str = ""
    elapsed_seconds: float = 0.0
    result: Optional[GenerationResult] = None
    error: Optional[str] = None
    finished_at: Optional[float] = None
    cancel: CancelToken = field(default_factory=CancelToken)
    task: Optional[asyncio.Task] = None

    def view(self) -> GenerationView:
        return GenerationView(
            id=self.id,
            kind=self.kind,
            status=self.status,
            prompt=self.prompt,
            message=self.message,
            elapsed_seconds=round(self.elapsed_seconds, 3),
            result=self.result,
            error=self.error,
        )


class GenerationService:
    """
    In-process registry of running music/video generations.

    Each generation is one asyncio task running JobPoller with its own
    CancelToken; shutdown() cancels every token and waits for the tasks.
    """

    def __init__(
        self,
        *,
        functions_factory: FunctionsFactory = _default_functions,
        poller_factory: PollerFactory = JobPoller,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._functions_factory = functions_factory
        self._poller_factory = poller_factory
        self._clock = clock
        self._jobs: Dict[str, Generation] = {}

    async def start(self, kind: MediaKind, prompt: str, session: Optional[Session]) -> GenerationView:
        kind = MediaKind(kind)
        spec = JOBS.get(kind)
        if spec is None:
            raise ValidationError("unsupported_generation_kind", kind=kind.value)
        if kind == MediaKind.music and session is None:
            raise AuthRequired()
        prompt = validate_prompt(prompt)

        self._prune()
        gen = Generation(
            id=str(uuid.uuid4()),
            kind=kind,
            prompt=prompt,
            user_id=session.user_id if session else None,
            started_at=self._clock(),
        )
        self._jobs[gen.id] = gen

        poller = self._poller_factory(self._functions_factory(session))
        gen.task = asyncio.create_task(self._run(gen, poller))
        logger.info("generation_started", extra={"job_id": gen.id, "kind": kind.value})
        return gen.view()

    async def _run(self, gen: Generation, poller: JobPoller) -> None:
        def on_progress(message: str, elapsed_s: float) -> None:
            gen.message = message
            gen.elapsed_seconds = elapsed_s

        try:
            gen.result = await poller.run(JOBS[gen.kind], gen.prompt, cancel=gen.cancel, on_progress=on_progress)
            gen.status = GenerationStatus.succeeded
        except GenerationCancelled as e:
            gen.status = GenerationStatus.cancelled
            gen.error = e.message
        except GenerationTimeout as e:
            gen.status = GenerationStatus.timeout
            gen.error = e.message
        except GalleryError as e:
            gen.status = GenerationStatus.failed
            gen.error = e.message
        except Exception as e:
            logger.exception("generation_crashed", extra={"job_id": gen.id, "kind": gen.kind.value})
            gen.status = GenerationStatus.failed
            gen.error = str(e) or e.__class__.__name__
        finally:
            gen.finished_at = self._clock()
            gen.elapsed_seconds = gen.finished_at - gen.started_at

        logger.info(
            "generation_finished",
            extra={"job_id": gen.id, "kind": gen.kind.value, "status": gen.status.value, "error": gen.error},
        )

    def _lookup(self, job_id: str, session: Optional[Session]) -> Generation:
        gen = self._jobs.get(job_id)
        if gen is None:
            raise NotFound("generation_not_found")
        # Owned generations are only visible to their owner.
        if gen.user_id and (session is None or session.user_id != gen.user_id):
            raise NotFound("generation_not_found")
        return gen

    def get(self, job_id: str, session: Optional[Session] = None) -> GenerationView:
        return self._lookup(job_id, session).view()

    def cancel(self, job_id: str, session: Optional[Session] = None) -> GenerationView:
        gen = self._lookup(job_id, session)
        if gen.status == GenerationStatus.running:
            gen.cancel.cancel()
            logger.info("generation_cancel_requested", extra={"job_id": gen.id})
        return gen.view()

    async def wait(self, job_id: str) -> GenerationView:
        gen = self._jobs.get(job_id)
        if gen is None:
            raise NotFound("generation_not_found")
        if gen.task is not None:
            await gen.task
        return gen.view()

    async def shutdown(self) -> None:
        tasks = []
        for gen in self._jobs.values():
            gen.cancel.cancel()
            if gen.task is not None and not gen.task.done():
                tasks.append(gen.task)
        if tasks:
            logger.info("generation_shutdown", extra={"running": len(tasks)})
            await asyncio.gather(*tasks, return_exceptions=True)

    def _prune(self) -> None:
        now = self._clock()
        stale = [
            gid
            for gid, g in self._jobs.items()
            if g.finished_at is not None and now - g.finished_at > RETAIN_FINISHED_SECONDS
        ]
        for gid in stale:
            self._jobs.pop(gid, None)

    async def generate_image(self, prompt: str, session: Optional[Session] = None) -> ImageGenerationOut:
        """Single proxy round trip; no polling."""
        prompt = validate_prompt(prompt)
        data = await self._functions_factory(session).invoke("generate-image", {"prompt": prompt})
        url = data.get("imageUrl")
        if not url:
            raise RemoteCallFailed("generate-image: missing imageUrl")
        return ImageGenerationOut(image_url=str(url))


_REGISTRY: GenerationService | None = None


def get_generation_service() -> GenerationService:
    global _REGISTRY
    if _REGISTRY is None:
        _REGISTRY = GenerationService()
    return _REGISTRY
