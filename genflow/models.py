# genflow/models.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from genflow.errors import ErrorKind


class Quality(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class GenerationRequest(BaseModel):
    """
    One generation job as the caller asked for it. Frozen: the validator hands
    back a copy (e.g. with reference images truncated) rather than editing it.
    Emptiness of prompt/model is checked by the validator, not here, so a bad
    request still reaches it and fails as `invalid_parameters`.
    """

    model_config = ConfigDict(frozen=True)

    prompt: str
    provider_id: str
    model: str = ""
    quality: Quality = Quality.MEDIUM
    aspect_ratio: str = "1:1"
    source_images: Tuple[str, ...] = Field(default_factory=tuple)
    mask_url: Optional[str] = None


# ---------- Payload ----------

@dataclass(frozen=True)
class ImageURL:
    url: str


@dataclass(frozen=True)
class ImageBytes:
    data: bytes = field(repr=False)
    content_type: str = "application/octet-stream"


@dataclass(frozen=True)
class Text:
    text: str


Payload = Union[ImageURL, ImageBytes, Text]


# ---------- ProviderOutcome ----------

@dataclass(frozen=True)
class Completed:
    """Terminal success; `raw` is the provider's output node, fed to the normalizer."""

    raw: Any

    def __post_init__(self) -> None:
        if self.raw is None or self.raw == "" or self.raw == [] or self.raw == {}:
            raise ValueError("Completed outcome requires a non-empty payload")


@dataclass(frozen=True)
class Pending:
    job_handle: str
    status: str = ""

    def __post_init__(self) -> None:
        if not self.job_handle:
            raise ValueError("Pending outcome requires a job handle")


@dataclass(frozen=True)
class Failed:
    kind: ErrorKind
    message: str
    retryable: bool = False
    # A transient error on an already-created job still names the job to poll.
    job_handle: Optional[str] = None
    detail: Optional[str] = None


ProviderOutcome = Union[Completed, Pending, Failed]
