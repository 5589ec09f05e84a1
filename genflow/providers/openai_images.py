# genflow/providers/openai_images.py
from __future__ import annotations

import json
import logging
import os
import secrets
import string
import time
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from genflow.models import Completed, GenerationRequest, ProviderOutcome, Quality
from genflow.transport import TransportError

from .base import (
    BodyStyle,
    Completion,
    ProviderCapabilities,
    ProviderClient,
    bounded_timeout,
    mime_type_for,
)

log = logging.getLogger(__name__)

GENERATIONS_URL = "https://api.openai.com/v1/images/generations"
EDITS_URL = "https://api.openai.com/v1/images/edits"
DEFAULT_MODEL = "gpt-image-1.5"

KEY_PREFIXES = ("sk-proj-", "sk-None-", "sk-svcacct-", "sk-")
MAX_REFERENCE_IMAGES = 16

_TIMEOUT_BY_QUALITY = {Quality.LOW: 90, Quality.MEDIUM: 180, Quality.HIGH: 360}

_DIMENSIONS = {
    "1:1": (1024, 1024),
    "16:9": (1792, 1024),
    "9:16": (1024, 1792),
    "4:3": (1344, 1024),
    "3:4": (1024, 1344),
}

_BOUNDARY_ALPHABET = string.ascii_letters + string.digits


def new_boundary() -> str:
    return "".join(secrets.choice(_BOUNDARY_ALPHABET) for _ in range(24))


def size_for_aspect_ratio(aspect_ratio: Optional[str]) -> str:
    w, h = _DIMENSIONS.get(aspect_ratio or "1:1", (1024, 1024))
    return f"{w}x{h}"


def build_multipart(
    boundary: str,
    fields: List[Tuple[str, str]],
    files: List[Tuple[str, str, str, bytes]],
) -> bytes:
    """
    Encode form fields then files, in the order given.
    files: (field name, filename, content type, data)
    """
    out = bytearray()
    for name, value in fields:
        out += f"--{boundary}\r\n".encode()
        out += f'Content-Disposition: form-data; name="{name}"\r\n\r\n'.encode()
        out += f"{value}\r\n".encode()
    for name, filename, ctype, data in files:
        out += f"--{boundary}\r\n".encode()
        out += f'Content-Disposition: form-data; name="{name}"; filename="{filename}"\r\n'.encode()
        out += f"Content-Type: {ctype}\r\n\r\n".encode()
        out += data
        out += b"\r\n"
    out += f"--{boundary}--\r\n".encode()
    return bytes(out)


class OpenAIProvider(ProviderClient):
    """
    OpenAI GPT Image. Synchronous: the HTTP reply carries the finished image.
    Reference images switch the call to the edits endpoint, which only takes
    multipart uploads.
    """

    name = "openai"
    display_name = "OpenAI"
    capabilities = ProviderCapabilities(
        models=(DEFAULT_MODEL, "gpt-image-1"),
        supports_image_to_image=True,
        max_reference_images=MAX_REFERENCE_IMAGES,
        image_body_style=BodyStyle.MULTIPART,
        completion=Completion.SYNC,
    )

    # swapped in tests to get a stable body
    boundary_factory = staticmethod(new_boundary)

    def validate_key_format(self, key: str) -> bool:
        return bool(key) and key.startswith(KEY_PREFIXES)

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def create(self, request: GenerationRequest, timeout: Optional[float] = None) -> ProviderOutcome:
        started = time.perf_counter()
        quality = request.quality.value
        timeout = bounded_timeout(_TIMEOUT_BY_QUALITY.get(request.quality, 180), timeout)
        sources = list(dict.fromkeys(request.source_images))[:MAX_REFERENCE_IMAGES]

        try:
            if sources:
                endpoint = EDITS_URL
                headers, body = self._edit_request(request, quality, sources, min(timeout, 30))
            else:
                endpoint = GENERATIONS_URL
                headers = self._headers()
                body = json.dumps(
                    {
                        "model": request.model,
                        "prompt": request.prompt,
                        "quality": quality,
                        "moderation": "low",
                        "output_format": "jpeg",
                        "size": size_for_aspect_ratio(request.aspect_ratio),
                    }
                )
            resp = self.transport.send("POST", endpoint, headers=headers, body=body, timeout=timeout)
        except TransportError as e:
            return self._transport_failure(e)

        latency_ms = int((time.perf_counter() - started) * 1000)
        log.info(
            "provider=openai event=image.create status=%s latency_ms=%s model=%s refs=%s",
            resp.status,
            latency_ms,
            request.model,
            len(sources),
        )
        return self._map_response(resp)

    def _edit_request(
        self, request: GenerationRequest, quality: str, sources: List[str], fetch_timeout: float
    ) -> Tuple[Dict[str, str], bytes]:
        boundary = self.boundary_factory()
        headers = self._headers()
        headers["Content-Type"] = f"multipart/form-data; boundary={boundary}"

        fields = [
            ("model", request.model),
            ("prompt", request.prompt),
            ("quality", quality),
            ("moderation", "low"),
            ("output_format", "jpeg"),
        ]
        files = []
        for url in sources:
            data = self.transport.fetch(url, timeout=fetch_timeout).body
            files.append(("image[]", _basename(url), mime_type_for(url), data))
        if request.mask_url:
            mask = self.transport.fetch(request.mask_url, timeout=fetch_timeout).body
            files.append(("mask", _basename(request.mask_url), mime_type_for(request.mask_url), mask))
        return headers, build_multipart(boundary, fields, files)

    def _map_response(self, resp) -> ProviderOutcome:
        if resp.status != 200:
            return self._http_failure(resp)

        data: Any = resp.json()
        if not isinstance(data, dict):
            return self._protocol_error("Invalid response format from OpenAI")
        if data.get("error"):
            return self._http_failure(resp)

        items = data.get("data")
        if not isinstance(items, list) or not items or not isinstance(items[0], dict):
            return self._protocol_error("Invalid response format from OpenAI")
        first = items[0]
        if not first.get("url") and not first.get("b64_json"):
            return self._protocol_error("Missing image data in OpenAI response")
        return Completed(raw=first)


def _basename(url: str) -> str:
    return os.path.basename(urlparse(url).path) or "image"
