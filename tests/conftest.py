import json
from io import BytesIO
from typing import Callable, List

import httpx
import pytest
from PIL import Image

from pipelines import Settings


def reply(pair) -> httpx.Response:
    """Build a fresh response from a (status_code, json-or-text) pair."""
    status_code, payload = pair
    if isinstance(payload, str):
        return httpx.Response(status_code, text=payload)
    return httpx.Response(status_code, json=payload)


FREEPIK_URL = "https://freepik.test/v1/ai"
STABILITY_URL = "https://stability.test/v1/generation/sdxl"
PLACEHOLDER_URL = "https://placeholder.test/shapes/png"


class FakeProviders:
    """Routes outbound provider calls to canned responses and records them."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.create_reply = (200, {"data": {"task_id": "task-1", "status": "CREATED"}})
        self.status_responses: List[httpx.Response] = []
        self.transform_reply = (200, {"artifacts": [{"base64": "QUJD"}]})

    def queue_statuses(self, *statuses):
        """Queue poll replies; each item is (status, generated) or an httpx.Response."""
        for item in statuses:
            if isinstance(item, httpx.Response):
                self.status_responses.append(item)
            else:
                status, generated = item
                self.status_responses.append(
                    httpx.Response(200, json={"data": {"status": status, "generated": generated}})
                )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if request.method == "POST" and url == f"{FREEPIK_URL}/mystic":
            return reply(self.create_reply)
        if request.method == "GET" and url.startswith(f"{FREEPIK_URL}/mystic/"):
            if not self.status_responses:
                return httpx.Response(200, json={"data": {"status": "IN_PROGRESS", "generated": []}})
            return self.status_responses.pop(0)
        if request.method == "POST" and url == f"{STABILITY_URL}/image-to-image":
            return reply(self.transform_reply)
        return httpx.Response(404, json={"message": "not found"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def calls_to(self, method: str, prefix: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and str(r.url).startswith(prefix)]

    @property
    def poll_count(self) -> int:
        return len(self.calls_to("GET", f"{FREEPIK_URL}/mystic/"))


@pytest.fixture
def providers() -> FakeProviders:
    return FakeProviders()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        freepik_api_key="freepik-test-key",
        stability_api_key="stability-test-key",
        freepik_base_url=FREEPIK_URL,
        stability_base_url=STABILITY_URL,
        placeholder_base_url=PLACEHOLDER_URL,
        poll_interval_seconds=0,
    )


@pytest.fixture
def make_image() -> Callable[..., bytes]:
    def _make(size=(800, 600), fmt="PNG", mode="RGB", color=(200, 40, 40)) -> bytes:
        if mode == "RGBA":
            color = color + (128,)
        buffer = BytesIO()
        Image.new(mode, size, color).save(buffer, format=fmt)
        return buffer.getvalue()

    return _make


def json_body(request: httpx.Request) -> dict:
    return json.loads(request.content)
