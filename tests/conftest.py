# tests/conftest.py
from __future__ import annotations

import io
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import pytest
from PIL import Image

from genflow.config import Settings
from genflow.context import build_context
from genflow.service import GenerationService
from genflow.transport import HttpResponse, TransportError

OPENAI_KEY = "sk-proj-test-0123456789"
REPLICATE_KEY = "r8_" + "a" * 37
FAL_KEY = "fal-test-key-0123456789abcdef"


def json_resp(status: int, payload: Any) -> HttpResponse:
    return HttpResponse(
        status=status,
        body=json.dumps(payload).encode("utf-8"),
        headers={"Content-Type": "application/json"},
    )


def png_bytes(size=(8, 8), color=(200, 30, 30)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="PNG")
    return buf.getvalue()


@dataclass
class Call:
    method: str
    url: str
    headers: Dict[str, str]
    body: Any
    timeout: float

    def json(self) -> Any:
        return json.loads(self.body)


class FakeTransport:
    """
    Scripted stand-in for HttpTransport. `send` pops the next queued response
    (or raises it when it is an exception); `fetch` serves `downloads`.
    """

    def __init__(self, responses=None, downloads: Optional[Dict[str, bytes]] = None):
        self.responses: List[Any] = list(responses or [])
        self.downloads: Dict[str, bytes] = dict(downloads or {})
        self.calls: List[Call] = []
        self.fetched: List[str] = []

    def queue(self, *items: Any) -> "FakeTransport":
        self.responses.extend(items)
        return self

    def send(self, method, url, headers=None, body=None, timeout=30) -> HttpResponse:
        self.calls.append(Call(method, url, dict(headers or {}), body, timeout))
        if not self.responses:
            raise AssertionError(f"unexpected {method} {url}")
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def fetch(self, url, timeout=30) -> HttpResponse:
        self.fetched.append(url)
        if url not in self.downloads:
            raise TransportError(f"Failed to download image: HTTP 404 for {url}")
        return HttpResponse(200, self.downloads[url], {"Content-Type": "image/png"})


def make_settings(tmp_path=None, **overrides) -> Settings:
    values = dict(
        GENFLOW_PROVIDER="",
        OPENAI_API_KEY=OPENAI_KEY,
        REPLICATE_API_TOKEN=REPLICATE_KEY,
        FAL_KEY=FAL_KEY,
    )
    if tmp_path is not None:
        values["OUTPUTS_DIR"] = str(tmp_path / "outputs")
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def make_service(tmp_path, transport, sleeps):
    def _make(**overrides) -> GenerationService:
        ctx = build_context(
            make_settings(tmp_path, **overrides),
            transport=transport,
            sleep=sleeps.append,
            clock=lambda: 0.0,
        )
        return GenerationService(ctx)

    return _make
