# genflow/normalizer.py
"""
Turn a provider's raw output node into a Payload.

Providers disagree on field names and on whether output is a bare value or a
list. Lists always resolve to their first usable element. A hosted URL is
preferred over inline bytes when both are present. No I/O happens here.
"""
from __future__ import annotations

import base64
import binascii
import io
import re
from typing import Any, Iterator, Optional

from PIL import Image, UnidentifiedImageError

from genflow.errors import ErrorKind, GenerationError
from genflow.models import ImageBytes, ImageURL, Payload, Text

URL_KEYS = ("url", "image_url", "img", "uri")
BYTES_KEYS = ("b64_json", "base64", "image_base64", "b64")
NESTED_KEYS = ("images", "generations", "output", "data", "image")

_DATA_URL_RE = re.compile(r"^data:(?P<ctype>[\w.+-]+/[\w.+-]+)?(?:;[^,]*)?;base64,(?P<data>.+)$", re.S)
_B64_RE = re.compile(r"^[A-Za-z0-9+/\s]+={0,2}$")

# stop runaway recursion on odd payloads
_MAX_DEPTH = 6


def normalize(raw: Any, expect: str = "image") -> Payload:
    if expect == "text":
        text = extract_text(raw)
        if text is None:
            raise GenerationError(ErrorKind.INVALID_RESPONSE, "Response did not include any text")
        return Text(text)

    url = _find_url(raw, 0)
    if url:
        return ImageURL(url)
    data = _find_bytes(raw, 0)
    if data:
        return ImageBytes(data, sniff_content_type(data))
    raise GenerationError(
        ErrorKind.INVALID_RESPONSE,
        "Response did not include an image URL or decodable image data",
    )


# ---------- image ----------

def _is_http_url(value: Any) -> bool:
    return isinstance(value, str) and value.strip().lower().startswith(("http://", "https://"))


def _children(raw: Any) -> Iterator[Any]:
    if isinstance(raw, (list, tuple)):
        yield from raw
    elif isinstance(raw, dict):
        for key in NESTED_KEYS:
            if key in raw:
                yield raw[key]


def _find_url(raw: Any, depth: int) -> Optional[str]:
    if depth > _MAX_DEPTH or raw is None:
        return None
    if isinstance(raw, str):
        return raw.strip() if _is_http_url(raw) else None
    if isinstance(raw, dict):
        for key in URL_KEYS:
            if _is_http_url(raw.get(key)):
                return raw[key].strip()
    for child in _children(raw):
        found = _find_url(child, depth + 1)
        if found:
            return found
    return None


def _find_bytes(raw: Any, depth: int) -> Optional[bytes]:
    if depth > _MAX_DEPTH or raw is None:
        return None
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw) or None
    if isinstance(raw, str):
        return _decode_unlabelled(raw)
    if isinstance(raw, dict):
        for key in BYTES_KEYS:
            value = raw.get(key)
            if isinstance(value, str):
                data = decode_base64(value)
                if data:
                    return data
        for key in URL_KEYS:
            value = raw.get(key)
            if isinstance(value, str):
                data = _decode_unlabelled(value)
                if data:
                    return data
    for child in _children(raw):
        found = _find_bytes(child, depth + 1)
        if found:
            return found
    return None


def _decode_unlabelled(value: str) -> Optional[bytes]:
    # outside a bytes field, bare base64 only counts when it decodes to an image
    data = decode_base64(value)
    if data is None or _DATA_URL_RE.match(value.strip()):
        return data
    return data if sniff_content_type(data) != "application/octet-stream" else None


def decode_base64(value: str) -> Optional[bytes]:
    """Decode a data: URL or a bare base64 string; None when it is neither."""
    s = value.strip()
    if not s:
        return None
    m = _DATA_URL_RE.match(s)
    if m:
        s = m.group("data")
    elif len(s) < 16 or not _B64_RE.match(s):
        return None
    try:
        data = base64.b64decode(re.sub(r"\s+", "", s), validate=True)
    except (binascii.Error, ValueError):
        return None
    return data or None


def sniff_content_type(data: bytes) -> str:
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
    except (UnidentifiedImageError, OSError):
        return "application/octet-stream"
    return Image.MIME.get(fmt or "", "application/octet-stream")


# ---------- text ----------

def extract_text(raw: Any) -> Optional[str]:
    """
    Pull text out of the shapes text models answer with: a bare string, a list
    of streamed fragments, a Responses API body, or a chat completion.
    """
    if isinstance(raw, str):
        return raw.strip() or None
    if isinstance(raw, list):
        if all(isinstance(x, str) for x in raw):
            return "".join(raw).strip() or None
        for item in raw:
            text = extract_text(item)
            if text:
                return text
        return None
    if not isinstance(raw, dict):
        return None

    if isinstance(raw.get("output_text"), str) and raw["output_text"].strip():
        return raw["output_text"].strip()

    output = raw.get("output")
    if isinstance(output, list):
        parts = []
        for item in output:
            if not isinstance(item, dict):
                continue
            for content in item.get("content") or []:
                if isinstance(content, dict) and isinstance(content.get("text"), str):
                    parts.append(content["text"])
        if parts:
            return "".join(parts).strip() or None
    elif isinstance(output, str):
        return output.strip() or None

    choices = raw.get("choices")
    if isinstance(choices, list) and choices and isinstance(choices[0], dict):
        message = choices[0].get("message") or {}
        content = message.get("content") if isinstance(message, dict) else None
        if isinstance(content, str):
            return content.strip() or None

    if isinstance(raw.get("text"), str):
        return raw["text"].strip() or None
    return None
