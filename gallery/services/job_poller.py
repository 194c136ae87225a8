from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from tenacity import AsyncRetrying, RetryCallState, RetryError, retry_if_result, wait_fixed

from gallery.clients.functions_client import FunctionsClient
from gallery.domain.enums import MediaKind
from gallery.domain.models import GenerationResult
from gallery.domain.validators import validate_prompt
from gallery.errors import (
    GenerationCancelled,
    GenerationFailed,
    GenerationTimeout,
    RemoteCallFailed,
)

logger = logging.getLogger("job_poller")

SleepFn = Callable[[float], Awaitable[None]]
ProgressFn = Callable[[str, float], None]


class CancelToken:
    """Set once; interrupts the poller's current wait and every later one."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise GenerationCancelled("generation_cancelled")

    async def sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return
        raise GenerationCancelled("generation_cancelled")


@dataclass(frozen=True)
class PollPolicy:
    interval_s: float
    timeout_s: Optional[float] = None
    max_attempts: Optional[int] = None


@dataclass(frozen=True)
class PollTick:
    pending: bool
    result: Optional[GenerationResult] = None


@dataclass(frozen=True)
class JobSpec:
    kind: MediaKind
    submit_fn: str
    status_fn: str
    policy: PollPolicy
    status_body: Callable[[Dict[str, Any]], Dict[str, Any]]
    classify: Callable[[Dict[str, Any]], PollTick]


# -----------------------------------------------------------------------------
# Video: one prediction id, done on "succeeded", output may be a list
# -----------------------------------------------------------------------------

VIDEO_SUCCEEDED = "succeeded"
VIDEO_FAILED = {"failed", "canceled"}


def _video_status_body(submitted: Dict[str, Any]) -> Dict[str, Any]:
    prediction_id = submitted.get("predictionId")
    if not prediction_id:
        raise RemoteCallFailed("generate-video: missing predictionId")
    return {"predictionId": str(prediction_id)}


def _classify_video(data: Dict[str, Any]) -> PollTick:
    status = str(data.get("status") or "").strip().lower()
    if status == VIDEO_SUCCEEDED:
        output = data.get("output")
        if isinstance(output, list):
            output = output[0] if output else None
        if not output:
            raise GenerationFailed("video_output_missing")
        return PollTick(pending=False, result=GenerationResult(url=str(output)))
    if status in VIDEO_FAILED:
        raise GenerationFailed(str(data.get("error") or "video_generation_failed"), status=status)
    return PollTick(pending=True)


# -----------------------------------------------------------------------------
# Music: several clip ids come back, only the first one is followed
# -----------------------------------------------------------------------------

MUSIC_COMPLETE = "complete"
MUSIC_FAILED = {"error", "failed"}


def _music_status_body(submitted: Dict[str, Any]) -> Dict[str, Any]:
    clip_ids = submitted.get("clipIds") or []
    if not clip_ids:
        raise RemoteCallFailed("generate-music: missing clipIds")
    return {"clipIds": [str(clip_ids[0])]}


def _classify_music(data: Dict[str, Any]) -> PollTick:
    status = str(data.get("status") or "").strip().lower()
    if status == MUSIC_COMPLETE:
        audio_url = data.get("audioUrl")
        if not audio_url:
            raise GenerationFailed("music_audio_missing")
        return PollTick(
            pending=False,
            result=GenerationResult(
                url=str(audio_url),
                title=data.get("title") or None,
                image_url=data.get("imageUrl") or None,
            ),
        )
    if status in MUSIC_FAILED:
        raise GenerationFailed(str(data.get("error") or "music_generation_failed"), status=status)
    return PollTick(pending=True)


VIDEO_JOB = JobSpec(
    kind=MediaKind.video,
    submit_fn="generate-video",
    status_fn="check-video-status",
    policy=PollPolicy(interval_s=3.0, timeout_s=300.0),
    status_body=_video_status_body,
    classify=_classify_video,
)

MUSIC_JOB = JobSpec(
    kind=MediaKind.music,
    submit_fn="generate-music",
    status_fn="check-music-status",
    policy=PollPolicy(interval_s=5.0, max_attempts=60),
    status_body=_music_status_body,
    classify=_classify_music,
)

JOBS = {
    MediaKind.video: VIDEO_JOB,
    MediaKind.music: MUSIC_JOB,
}


def progress_message(kind: MediaKind, elapsed_s: float) -> str:
    return f"Generating {kind.value}... ({int(elapsed_s)}s elapsed)"


class JobPoller:
    """
    submit -> wait interval -> poll status -> ... until terminal or budget spent.

    tenacity drives the loop: a pending tick is "retried" after a fixed wait,
    anything raised by a poll propagates immediately, and running out of
    budget surfaces as RetryError, which becomes GenerationTimeout.

    `sleep` and `clock` are injectable so the loop can run on a fake clock.
    """

    def __init__(
        self,
        functions: FunctionsClient,
        *,
        sleep: Optional[SleepFn] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.functions = functions
        self._sleep = sleep
        self._clock = clock

    async def _pause(self, seconds: float, cancel: CancelToken) -> None:
        cancel.raise_if_cancelled()
        if self._sleep is not None:
            await self._sleep(seconds)
        else:
            await cancel.sleep(seconds)
        cancel.raise_if_cancelled()

    def _stop(self, policy: PollPolicy, started: float) -> Callable[[RetryCallState], bool]:
        def should_stop(state: RetryCallState) -> bool:
            if policy.max_attempts is not None and state.attempt_number >= policy.max_attempts:
                return True
            if policy.timeout_s is not None and self._clock() - started >= policy.timeout_s:
                return True
            return False

        return should_stop

    async def run(
        self,
        spec: JobSpec,
        prompt: str,
        *,
        cancel: Optional[CancelToken] = None,
        on_progress: Optional[ProgressFn] = None,
    ) -> GenerationResult:
        prompt = validate_prompt(prompt)
        cancel = cancel or CancelToken()
        cancel.raise_if_cancelled()

        submitted = await self.functions.invoke(spec.submit_fn, {"prompt": prompt})
        status_body = spec.status_body(submitted)
        started = self._clock()
        logger.info(
            "generation_submitted",
            extra={"kind": spec.kind.value, "status_fn": spec.status_fn, "job": status_body},
        )

        async def poll_once() -> PollTick:
            cancel.raise_if_cancelled()
            data = await self.functions.invoke(spec.status_fn, status_body)
            elapsed = self._clock() - started
            if on_progress is not None:
                on_progress(progress_message(spec.kind, elapsed), elapsed)
            return spec.classify(data)

        retrying = AsyncRetrying(
            retry=retry_if_result(lambda tick: tick.pending),
            wait=wait_fixed(spec.policy.interval_s),
            stop=self._stop(spec.policy, started),
            sleep=lambda seconds: self._pause(seconds, cancel),
        )

        await self._pause(spec.policy.interval_s, cancel)
        try:
            tick = await retrying(poll_once)
        except RetryError as e:
            attempts = e.last_attempt.attempt_number
            logger.warning(
                "generation_timeout",
                extra={"kind": spec.kind.value, "attempts": attempts, "elapsed_s": self._clock() - started},
            )
            raise GenerationTimeout(f"{spec.kind.value}_generation_timeout", attempts=attempts) from e

        logger.info("generation_succeeded", extra={"kind": spec.kind.value, "url": tick.result.url})
        return tick.result
