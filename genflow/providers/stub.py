# genflow/providers/stub.py
from __future__ import annotations

import base64
import io
import logging
from typing import Optional

from PIL import Image, ImageDraw  # pillow required

from genflow.errors import ErrorKind
from genflow.models import Completed, Failed, GenerationRequest, ProviderOutcome

from .base import Completion, ProviderCapabilities, ProviderClient, prompt_hash
from .openai_images import size_for_aspect_ratio

log = logging.getLogger(__name__)


class StubProvider(ProviderClient):
    """Offline provider: draws a placeholder card with the prompt hash."""

    name = "stub"
    display_name = "Stub"
    capabilities = ProviderCapabilities(
        models=("placeholder",),
        supports_image_to_image=True,
        max_reference_images=4,
        completion=Completion.SYNC,
        requires_api_key=False,
    )

    def validate_key_format(self, key: str) -> bool:
        return True

    def create(self, request: GenerationRequest, timeout: Optional[float] = None) -> ProviderOutcome:
        if "force_fail" in request.prompt:
            return Failed(ErrorKind.GENERATION_FAILED, "Stub provider forced failure")

        w, h = (int(x) for x in size_for_aspect_ratio(request.aspect_ratio).split("x"))
        # keep placeholders small
        w, h = w // 4, h // 4

        img = Image.new("RGB", (w, h), (240, 240, 240))
        draw = ImageDraw.Draw(img)
        ph = prompt_hash(request.prompt)
        draw.text((12, 12), f"genflow stub\n{ph}", fill=(40, 40, 40))
        if request.source_images:
            draw.text((12, h - 24), f"refs={len(request.source_images)}", fill=(90, 90, 90))

        buf = io.BytesIO()
        img.save(buf, format="PNG")
        log.info("provider=stub event=image.create prompt_hash=%s size=%sx%s", ph, w, h)
        return Completed(raw={"b64_json": base64.b64encode(buf.getvalue()).decode("ascii")})
