# genflow/providers/replicate_text.py
from __future__ import annotations

from typing import Any, Dict, Optional

from genflow.errors import ErrorKind
from genflow.models import Completed, Failed, GenerationRequest, ProviderOutcome

from .base import Completion, ProviderCapabilities
from .openai_text import ALT_TEXT_SYSTEM_PROMPT
from .replicate_images import ReplicatePredictions


class ReplicateTextProvider(ReplicatePredictions):
    """
    Alt text through Replicate-hosted vision models. Gemini and OpenAI models
    take differently named inputs; the model owner picks the shape.
    """

    name = "replicate-text"
    display_name = "Replicate"
    key_id = "replicate"
    capabilities = ProviderCapabilities(
        models=("google/gemini-3-pro", "openai/gpt-5-mini"),
        supports_image_to_image=True,
        max_reference_images=1,
        completion=Completion.JOB,
        requires_source_image=True,
        output="text",
    )

    create_timeout = 20
    poll_timeout = 10

    def supports_model(self, model: str) -> bool:
        owner, _, name = model.partition("/")
        return bool(owner and name)

    def build_input(self, request: GenerationRequest) -> Dict[str, Any]:
        images = list(request.source_images[:1])
        if request.model.startswith("openai/"):
            return {
                "prompt": request.prompt,
                "system_prompt": ALT_TEXT_SYSTEM_PROMPT,
                "image_input": images,
                "verbosity": "low",
                "reasoning_effort": "minimal",
            }
        return {
            "prompt": request.prompt,
            "system_instruction": ALT_TEXT_SYSTEM_PROMPT,
            "images": images,
        }

    def create(self, request: GenerationRequest, timeout: Optional[float] = None) -> ProviderOutcome:
        return self._post_prediction(request.model, self.build_input(request), timeout)

    def _completed(self, output: Any) -> ProviderOutcome:
        # language models stream tokens, so output is usually a list of fragments
        if isinstance(output, list):
            output = "".join(str(part) for part in output if part is not None)
        if not isinstance(output, str) or not output.strip():
            return Failed(ErrorKind.INVALID_RESPONSE, "Replicate response did not include alt text.")
        return Completed(raw=output.strip())
