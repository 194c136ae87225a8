import json

import httpx
import pytest

from gallery.services.providers.base import ProviderApiError
from gallery.services.providers.openai_images import OpenAIImageClient
from gallery.services.providers.replicate import ReplicateClient
from gallery.services.providers.suno import SunoClient


class Recorder:
    """MockTransport handler that records requests and replays one response"""

    def __init__(self, status=200, body=None, text=None):
        self.status = status
        self.body = body
        self.text = text
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.text is not None:
            return httpx.Response(self.status, text=self.text)
        return httpx.Response(self.status, json=self.body)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


@pytest.mark.asyncio
async def test_suno_generate_posts_prompt_and_returns_clip_ids():
    rec = Recorder(body=[{"id": "c1", "status": "submitted"}, {"id": "c2", "status": "submitted"}])
    client = SunoClient(api_key="k", transport=httpx.MockTransport(rec))

    clip_ids = await client.generate("lofi beats")

    assert clip_ids == ["c1", "c2"]
    assert rec.last.method == "POST"
    assert rec.last.headers["Authorization"] == "Bearer k"
    assert json.loads(rec.last.content) == {"prompt": "lofi beats", "make_instrumental": False, "wait_audio": False}


@pytest.mark.asyncio
async def test_suno_check_complete_clip():
    rec = Recorder(body=[{"id": "c1", "status": "complete", "audio_url": "https://a/c1.mp3", "title": "T", "image_url": "https://a/c1.png"}])
    client = SunoClient(api_key="k", transport=httpx.MockTransport(rec))

    out = await client.check(["c1", "c2"])

    assert out == {"status": "complete", "audioUrl": "https://a/c1.mp3", "title": "T", "imageUrl": "https://a/c1.png"}
    assert rec.last.method == "GET"
    assert rec.last.url.params["ids"] == "c1"
    assert rec.last.headers["api-key"] == "k"


@pytest.mark.asyncio
async def test_suno_check_defaults_to_generating():
    rec = Recorder(body=[{"id": "c1"}])
    client = SunoClient(api_key="k", transport=httpx.MockTransport(rec))

    assert await client.check(["c1"]) == {"status": "generating"}


@pytest.mark.asyncio
async def test_suno_error_status_and_missing_key():
    rec = Recorder(status=402, text="payment required")
    client = SunoClient(api_key="k", transport=httpx.MockTransport(rec))

    with pytest.raises(ProviderApiError) as exc:
        await client.generate("x")
    assert "402" in str(exc.value)
    assert "payment required" in str(exc.value)

    with pytest.raises(ProviderApiError) as exc:
        await SunoClient(api_key="", transport=httpx.MockTransport(rec)).generate("x")
    assert str(exc.value) == "SUNO_API_KEY is not configured"
    assert len(rec.requests) == 1


@pytest.mark.asyncio
async def test_replicate_create_and_poll():
    rec = Recorder(body={"id": "p1", "status": "starting"})
    client = ReplicateClient(api_key="r", version="v1", transport=httpx.MockTransport(rec))

    assert await client.create_prediction("a cat") == "p1"
    assert rec.last.url.path == "/v1/predictions"
    assert rec.last.headers["Authorization"] == "Token r"
    assert json.loads(rec.last.content) == {"version": "v1", "input": {"prompt": "a cat"}}

    rec.body = {"id": "p1", "status": "succeeded", "output": ["https://r/v.mp4"], "error": None, "logs": "..."}
    assert await client.get_prediction("p1") == {"status": "succeeded", "output": ["https://r/v.mp4"], "error": None}
    assert rec.last.url.path == "/v1/predictions/p1"


@pytest.mark.asyncio
async def test_replicate_requires_version():
    rec = Recorder(body={})
    client = ReplicateClient(api_key="r", version="", transport=httpx.MockTransport(rec))

    with pytest.raises(ProviderApiError):
        await client.create_prediction("a cat")
    assert rec.requests == []


@pytest.mark.asyncio
async def test_openai_image_url_or_base64():
    rec = Recorder(body={"data": [{"url": "https://o/img.png"}]})
    client = OpenAIImageClient(api_key="o", transport=httpx.MockTransport(rec))

    assert await client.generate("a fox") == "https://o/img.png"
    sent = json.loads(rec.last.content)
    assert sent["prompt"] == "a fox"
    assert sent["model"] == "dall-e-3"
    assert rec.last.url.path.endswith("/images/generations")

    rec.body = {"data": [{"b64_json": "aGVsbG8="}]}
    assert await client.generate("a fox") == "data:image/png;base64,aGVsbG8="


@pytest.mark.asyncio
async def test_invalid_json_body():
    rec = Recorder(text="<html>oops</html>")
    client = OpenAIImageClient(api_key="o", transport=httpx.MockTransport(rec))

    with pytest.raises(ProviderApiError) as exc:
        await client.generate("a fox")
    assert "INVALID_JSON" in str(exc.value)
