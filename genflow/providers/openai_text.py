# genflow/providers/openai_text.py
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from genflow.models import Completed, GenerationRequest, ProviderOutcome
from genflow.transport import TransportError

from .base import Completion, ProviderCapabilities, ProviderClient, bounded_timeout
from .openai_images import KEY_PREFIXES

log = logging.getLogger(__name__)

RESPONSES_URL = "https://api.openai.com/v1/responses"

ALT_TEXT_SYSTEM_PROMPT = "\n".join(
    [
        "You write concise alt text for images.",
        "Return a single sentence, 20-30 words.",
        "Include key subject, setting, and any notable action.",
        'Do not include quotes or the phrase "image of".',
    ]
)


class OpenAITextProvider(ProviderClient):
    """Alt text through the OpenAI Responses API. Uses the openai key."""

    name = "openai-text"
    display_name = "OpenAI"
    key_id = "openai"
    capabilities = ProviderCapabilities(
        models=("gpt-5.2", "gpt-5-mini"),
        supports_image_to_image=True,
        max_reference_images=1,
        completion=Completion.SYNC,
        requires_source_image=True,
        output="text",
    )

    timeout = 30

    def supports_model(self, model: str) -> bool:
        return model.startswith("gpt-")

    def validate_key_format(self, key: str) -> bool:
        return bool(key) and key.startswith(KEY_PREFIXES)

    def build_body(self, request: GenerationRequest) -> Dict[str, Any]:
        user_content: List[Dict[str, str]] = [{"type": "input_text", "text": request.prompt}]
        for image in request.source_images[:1]:
            user_content.append({"type": "input_image", "image_url": image})
        return {
            "model": request.model,
            "temperature": 0.2,
            "max_output_tokens": 120,
            "input": [
                {
                    "role": "system",
                    "content": [{"type": "input_text", "text": ALT_TEXT_SYSTEM_PROMPT}],
                },
                {"role": "user", "content": user_content},
            ],
        }

    def create(self, request: GenerationRequest, timeout: Optional[float] = None) -> ProviderOutcome:
        try:
            resp = self.transport.send(
                "POST",
                RESPONSES_URL,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                body=json.dumps(self.build_body(request)),
                timeout=bounded_timeout(self.timeout, timeout),
            )
        except TransportError as e:
            return self._transport_failure(e)

        log.info("provider=openai-text event=alt_text.create status=%s model=%s", resp.status, request.model)
        if resp.status != 200:
            return self._http_failure(resp)
        body = resp.json()
        if not isinstance(body, dict) or not body:
            return self._protocol_error("Invalid response format from OpenAI")
        return Completed(raw=body)
