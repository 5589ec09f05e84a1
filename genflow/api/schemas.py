# genflow/api/schemas.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field
from typing_extensions import Literal


# ---------- Core envelopes ----------
class ErrorObject(BaseModel):
    code: str = Field(..., description="Machine-readable code, e.g. CONTENT_MODERATION")
    message: str = Field(..., description="Human-readable message")
    details: Optional[Dict[str, Any]] = Field(default=None, description="Optional structured context")


class ErrorEnvelope(BaseModel):
    ok: Literal[False] = False
    error: ErrorObject
    request_id: str


class OkEnvelope(BaseModel):
    ok: Literal[True] = True
    data: Any


# ---------- Image generation ----------
class GenerateImageRequest(BaseModel):
    # emptiness is checked by the validator so it surfaces as invalid_parameters
    prompt: str = ""
    provider: Optional[str] = Field(default=None, description="openai|replicate|fal|stub")
    aspect_ratio: Optional[str] = Field(default=None, description="e.g., 1:1, 16:9")
    quality: Optional[Literal["low", "medium", "high"]] = None
    model: Optional[str] = None
    source_image_url: Optional[str] = None
    additional_image_urls: List[str] = Field(default_factory=list)
    mask_url: Optional[str] = None
    persist: bool = Field(default=False, description="Save the image to the outputs dir")


class GeneratedImage(BaseModel):
    url: str
    id: Optional[str] = None
    status: str = "completed"
    provider: str
    content_type: Optional[str] = None


# ---------- Alt text ----------
class AltTextRequest(BaseModel):
    prompt: str = ""
    image: str = Field(default="", description="Image URL or base64 data URL")
    provider: Optional[str] = None


class AltTextResult(BaseModel):
    alt_text: str
