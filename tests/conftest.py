"""Shared fixtures: a controllable clock, fake backends and fake generators."""

import base64
import json
from typing import Optional, Union

import httpx
import pytest

from socialpulse_media.clock import Clock
from socialpulse_media.config import BackendSettings
from socialpulse_media.generators import ImageGenerator
from socialpulse_media.models import GenerationRequest, GenerationResult, ReferenceImage


PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-png-data"
JPEG_BYTES = b"\xff\xd8\xff\xe0fake-jpeg-data"

PRODUCT_IMAGE = ReferenceImage(data=b"product-bytes", mime_type="image/png")
PRESENTER_IMAGE = ReferenceImage(data=b"presenter-bytes", mime_type="image/jpeg")


class FakeClock(Clock):
    """Clock whose time only moves when slept or advanced."""

    def __init__(self, start: float = 1000.0):
        self.time = start
        self.start = start
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self.time

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.time += seconds

    def advance(self, seconds: float) -> None:
        self.time += seconds

    @property
    def elapsed(self) -> float:
        return self.time - self.start


def kie_record(flag: int, urls: Optional[list] = None, error: Optional[str] = None, progress: Optional[str] = None) -> dict:
    """A Kie.ai record-info `data` payload."""
    record = {"taskId": "task-123", "successFlag": flag}
    if urls is not None:
        record["response"] = {"result_urls": urls}
    if error is not None:
        record["errorMessage"] = error
    if progress is not None:
        record["progress"] = progress
    return record


class FakeKieBackend:
    """httpx.MockTransport handler emulating the Kie.ai task API.

    `records` is the sequence of record-info payloads returned by successive
    polls (the last one repeats). An entry may also be an httpx.Response to
    return verbatim, or an exception to raise. `submit` and `upload` replace
    the default submit and upload replies the same way.
    """

    def __init__(
        self,
        records: list,
        submit: Optional[Union[dict, httpx.Response, Exception]] = None,
        upload: Optional[Union[dict, httpx.Response, Exception]] = None,
        image_response: Optional[Union[httpx.Response, Exception]] = None,
        clock: Optional[FakeClock] = None,
        poll_cost: float = 0.0,
    ):
        self.records = list(records)
        self.submit = submit if submit is not None else {"code": 200, "msg": "success", "data": {"taskId": "task-123"}}
        self.upload = upload
        self.image_response = image_response
        self.clock = clock
        self.poll_cost = poll_cost
        self.requests: list[httpx.Request] = []
        self.poll_count = 0
        self.upload_count = 0

    def _respond(self, item):
        if isinstance(item, Exception):
            raise item
        if isinstance(item, httpx.Response):
            return item
        return httpx.Response(200, json=item)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.endswith("/file/upload-base64"):
            self.upload_count += 1
            if self.upload is not None:
                return self._respond(self.upload)
            return httpx.Response(200, json={
                "code": 200,
                "data": {"downloadUrl": f"https://files.kie.ai/ref-{self.upload_count}.png"},
            })

        if path.endswith("/generate"):
            return self._respond(self.submit)

        if path.endswith("/record-info"):
            self.poll_count += 1
            if self.clock is not None and self.poll_cost:
                self.clock.advance(self.poll_cost)
            record = self.records[min(self.poll_count - 1, len(self.records) - 1)]
            if isinstance(record, (Exception, httpx.Response)):
                return self._respond(record)
            return httpx.Response(200, json={"code": 200, "msg": "success", "data": record})

        if request.url.host == "cdn.kie.ai":
            if self.image_response is not None:
                return self._respond(self.image_response)
            return httpx.Response(200, content=JPEG_BYTES, headers={"content-type": "image/jpeg"})

        return httpx.Response(404, json={"code": 404, "msg": "not found"})

    @property
    def submitted(self) -> Optional[httpx.Request]:
        for request in self.requests:
            if request.url.path.endswith("/generate"):
                return request
        return None

    @property
    def submitted_body(self) -> dict:
        return json.loads(self.submitted.content)


def mock_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def gemini_image_response(data: bytes = PNG_BYTES, mime_type: str = "image/png") -> dict:
    return {
        "candidates": [{
            "content": {"parts": [
                {"text": "Here is your image"},
                {"inlineData": {"mimeType": mime_type, "data": base64.b64encode(data).decode()}},
            ]},
            "finishReason": "STOP",
        }]
    }


class FakeGenerator(ImageGenerator):
    """Scripted generator for orchestrator tests.

    `outcome` is either a GenerationResult to return or an exception to raise
    from `_generate`.
    """

    available_models = ("fake-model",)

    def __init__(self, provider_id: str, configured: bool = True, outcome=None):
        super().__init__(
            BackendSettings(api_key="fake-key" if configured else ""),
            client=mock_client(lambda request: httpx.Response(500)),
        )
        self.provider_id = provider_id
        self.display_name = provider_id.title()
        self.env_prefix = provider_id.upper()
        self.outcome = outcome if outcome is not None else GenerationResult.ok(
            image_url=f"https://{provider_id}.example/image.png",
            provider=provider_id,
        )
        self.calls: list[GenerationRequest] = []

    def _generate(self, request: GenerationRequest, model: str) -> GenerationResult:
        self.calls.append(request)
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def request_basic():
    return GenerationRequest(prompt="Cup of coffee", aspect_ratio="1:1", style="minimalist")
