# genflow/providers/base.py
from __future__ import annotations

import base64
import hashlib
import json
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urlparse

from genflow.errors import CONTENT_MODERATION_MESSAGE, ErrorKind
from genflow.models import Failed, GenerationRequest, ProviderOutcome, Quality
from genflow.transport import HttpResponse, HttpTransport, TransportError

log = logging.getLogger(__name__)

MIN_TIMEOUT = 0.5

_MIME_BY_EXT = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "webp": "image/webp",
    "gif": "image/gif",
}


class BodyStyle(str, Enum):
    JSON = "json"
    MULTIPART = "multipart"


class Completion(str, Enum):
    SYNC = "sync"
    JOB = "job"


@dataclass(frozen=True)
class ProviderCapabilities:
    models: Tuple[str, ...]
    supports_image_to_image: bool = False
    max_reference_images: int = 0
    # body used once reference images are attached; plain prompts are always JSON
    image_body_style: BodyStyle = BodyStyle.JSON
    completion: Completion = Completion.SYNC
    requires_api_key: bool = True
    requires_source_image: bool = False
    output: str = "image"  # "image" | "text"

    @property
    def job_based(self) -> bool:
        return self.completion is Completion.JOB


def prompt_hash(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()[:16]


def matches_signature(text: Optional[str], signatures: Iterable[str]) -> bool:
    """Case-insensitive substring match against a list of signature strings."""
    if not text:
        return False
    haystack = text.lower()
    return any(sig and sig.lower() in haystack for sig in signatures)


def mime_type_for(url: str, default: str = "application/octet-stream") -> str:
    ext = os.path.splitext(urlparse(url).path)[1].lstrip(".").lower()
    return _MIME_BY_EXT.get(ext, default)


def bounded_timeout(default: float, limit: Optional[float]) -> float:
    """Per-call HTTP timeout, capped by whatever is left of the caller's deadline."""
    if limit is None:
        return default
    return max(min(default, limit), MIN_TIMEOUT)


def to_data_url(data: bytes, content_type: str) -> str:
    return f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}"


def error_text(body: Any, fallback: str) -> str:
    """Pull a message out of the assorted error shapes providers return."""
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict):
            msg = err.get("message") or err.get("code")
            if msg:
                return str(msg)
        elif err:
            return str(err)
        detail = body.get("detail")
        if isinstance(detail, (list, dict)):
            return json.dumps(detail)
        if detail:
            return str(detail)
    return fallback


# ---------- Provider client ----------

class ProviderClient(ABC):
    """
    One third-party API. `create` and `poll` each issue exactly one outbound
    call (reference-image downloads aside) and map the reply to a
    ProviderOutcome; they never retry and never raise for provider-side errors.
    """

    name: str = "base"
    display_name: str = "Base"
    key_id: Optional[str] = None  # settings key shared with another provider id
    capabilities: ProviderCapabilities = ProviderCapabilities(models=())

    def __init__(
        self,
        api_key: str,
        transport: HttpTransport,
        moderation_signatures: Sequence[str] = (),
        quota_signatures: Sequence[str] = (),
    ):
        self.api_key = (api_key or "").strip()
        self.transport = transport
        self.moderation_signatures: List[str] = list(moderation_signatures)
        self.quota_signatures: List[str] = list(quota_signatures)

    @classmethod
    def settings_key(cls) -> str:
        return cls.key_id or cls.name

    @classmethod
    def model_for_quality(cls, quality: Quality) -> str:
        return cls.capabilities.models[0] if cls.capabilities.models else ""

    def supports_model(self, model: str) -> bool:
        return model in self.capabilities.models

    @abstractmethod
    def validate_key_format(self, key: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def create(self, request: GenerationRequest, timeout: Optional[float] = None) -> ProviderOutcome:
        raise NotImplementedError

    def poll(self, job_handle: str, timeout: Optional[float] = None) -> ProviderOutcome:
        return Failed(
            ErrorKind.PROTOCOL_ERROR,
            f"{self.display_name} completes synchronously and has no job to poll",
        )

    # ---- shared response mapping ----

    def _transport_failure(self, exc: TransportError, job_handle: Optional[str] = None) -> Failed:
        log.warning("provider=%s event=transport.fail error=%s", self.name, exc)
        return Failed(
            ErrorKind.TRANSPORT,
            f"{self.display_name} request failed: {exc}",
            retryable=True,
            job_handle=job_handle,
        )

    def _classify_failure(
        self,
        text: str,
        *,
        status: Optional[int] = None,
        default_kind: ErrorKind = ErrorKind.GENERATION_FAILED,
        job_handle: Optional[str] = None,
    ) -> Failed:
        """
        Moderation and quota signatures win over HTTP status; 429/5xx are the only
        retryable HTTP failures.
        """
        if matches_signature(text, self.moderation_signatures):
            return Failed(ErrorKind.CONTENT_MODERATION, CONTENT_MODERATION_MESSAGE, detail=text)
        if matches_signature(text, self.quota_signatures):
            return Failed(ErrorKind.GENERATION_FAILED, text, detail=text)
        if status is not None and (status == 429 or 500 <= status < 600):
            return Failed(
                ErrorKind.TRANSPORT,
                f"{self.display_name} HTTP {status}: {text}",
                retryable=True,
                job_handle=job_handle,
                detail=text,
            )
        return Failed(default_kind, text, detail=text)

    def _http_failure(
        self,
        resp: HttpResponse,
        default_kind: ErrorKind = ErrorKind.GENERATION_FAILED,
        job_handle: Optional[str] = None,
    ) -> Failed:
        text = error_text(resp.json(), f"API Error (HTTP {resp.status}): {resp.text[:500]}")
        return self._classify_failure(
            text, status=resp.status, default_kind=default_kind, job_handle=job_handle
        )

    def _protocol_error(self, message: str) -> Failed:
        log.error("provider=%s event=protocol.error message=%s", self.name, message)
        return Failed(ErrorKind.PROTOCOL_ERROR, message)


# ---------- Registry ----------

class ProviderRegistry:
    def __init__(self):
        self._providers: Dict[str, type[ProviderClient]] = {}

    def register(self, provider_cls: type[ProviderClient]):
        name = getattr(provider_cls, "name", None)
        if not name or name == "base":
            raise ValueError("Provider class must define a 'name' attribute")
        self._providers[name] = provider_cls
        return provider_cls

    def get_class(self, name: str) -> type[ProviderClient]:
        key = (name or "").strip().lower()
        if key not in self._providers:
            raise ValueError(
                f"Unknown provider '{name}'. Registered: {sorted(self._providers.keys())}"
            )
        return self._providers[key]

    def create(self, name: str, **kwargs: Any) -> ProviderClient:
        return self.get_class(name)(**kwargs)

    def available(self) -> list[str]:
        return sorted(self._providers.keys())

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.strip().lower() in self._providers
