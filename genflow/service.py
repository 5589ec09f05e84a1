# genflow/service.py
"""
Entry points: `orchestrate` for images and `generate_alt_text` for the
fallback-chain path. Both block until a terminal outcome and raise
GenerationError on any classified failure.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from genflow.config import Settings
from genflow.context import GenerationContext
from genflow.errors import ErrorKind, GenerationError, invalid_parameters
from genflow.fallback import AltTextRoute, FallbackChain, ModelRoute
from genflow.models import Completed, Failed, GenerationRequest, Payload, ProviderOutcome, Quality, Text
from genflow.normalizer import normalize
from genflow.orchestrator import Orchestrator, RetryPolicy
from genflow.providers import IMAGE_PROVIDERS
from genflow.providers.base import ProviderClient
from genflow.validator import validate

log = logging.getLogger(__name__)

DEFAULT_ALT_TEXT_PROMPT = "Write alt text for this image."


def alt_text_routes(settings: Settings) -> Dict[str, AltTextRoute]:
    """Image provider id -> text route used to describe its images."""
    return {
        "openai": AltTextRoute(primary=ModelRoute("openai-text", settings.ALT_TEXT_OPENAI_MODEL)),
        "replicate": AltTextRoute(
            primary=ModelRoute("replicate-text", settings.ALT_TEXT_REPLICATE_MODEL),
            fallback=ModelRoute("replicate-text", settings.ALT_TEXT_REPLICATE_FALLBACK_MODEL),
        ),
    }


class GenerationService:
    def __init__(self, context: GenerationContext):
        self.ctx = context
        self.routes = alt_text_routes(context.settings)

    # ---- providers ----

    def image_provider_ids(self) -> List[str]:
        return [cls.name for cls in IMAGE_PROVIDERS if cls.name in self.ctx.registry]

    def image_to_image_provider_ids(self) -> List[str]:
        return [
            pid
            for pid in self.image_provider_ids()
            if self.ctx.registry.get_class(pid).capabilities.supports_image_to_image
        ]

    def provider(self, provider_id: str) -> ProviderClient:
        if provider_id not in self.ctx.registry:
            raise invalid_parameters(f"Unknown provider: {provider_id}")
        cls = self.ctx.registry.get_class(provider_id)
        key_id = cls.settings_key()
        return self.ctx.registry.create(
            cls.name,
            api_key=self.ctx.store.get_api_key(key_id),
            transport=self.ctx.transport,
            moderation_signatures=self.ctx.settings.moderation_signatures_for(key_id),
            quota_signatures=self.ctx.settings.QUOTA_SIGNATURES,
        )

    def build_request(
        self,
        prompt: str,
        provider_id: Optional[str] = None,
        *,
        model: Optional[str] = None,
        quality: Optional[Quality] = None,
        aspect_ratio: Optional[str] = None,
        source_images: Iterable[str] = (),
        mask_url: Optional[str] = None,
    ) -> GenerationRequest:
        """Fill in whatever the caller left out from the settings store."""
        store = self.ctx.store
        pid = (provider_id or "").strip().lower() or store.active_provider_id(self.image_provider_ids())
        if not pid:
            raise invalid_parameters("No image provider is configured")
        if pid not in self.image_provider_ids():
            raise invalid_parameters(f"Unknown image provider: {pid}")
        return GenerationRequest(
            prompt=prompt or "",
            provider_id=pid,
            model=model or store.get_selected_model(pid),
            quality=quality or store.get_quality(),
            aspect_ratio=aspect_ratio or self.ctx.settings.DEFAULT_ASPECT_RATIO,
            source_images=tuple(u for u in source_images if u),
            mask_url=mask_url or None,
        )

    # ---- image path ----

    def _deadline(self) -> Optional[float]:
        secs = self.ctx.settings.REQUEST_DEADLINE_SECS
        return self.ctx.clock() + secs if secs else None

    def _execute(
        self, request: GenerationRequest, policy: RetryPolicy
    ) -> Tuple[ProviderOutcome, int, ProviderClient]:
        provider = self.provider(request.provider_id)
        request = validate(request, provider)
        orch = Orchestrator(
            provider,
            policy,
            sleep=self.ctx.sleep,
            clock=self.ctx.clock,
            deadline=self._deadline(),
        )
        return orch.run(request), orch.calls, provider

    def run(self, request: GenerationRequest, policy: Optional[RetryPolicy] = None) -> ProviderOutcome:
        """Validate and drive the request; returns the raw terminal outcome."""
        outcome, _, _ = self._execute(request, policy or RetryPolicy.from_settings(self.ctx.settings))
        return outcome

    def orchestrate(self, request: GenerationRequest, policy: Optional[RetryPolicy] = None) -> Payload:
        metrics = self.ctx.metrics
        kind = "image"
        if request.provider_id in self.ctx.registry:
            if self.ctx.registry.get_class(request.provider_id).capabilities.output == "text":
                kind = "alt_text"
        try:
            outcome, calls, provider = self._execute(
                request, policy or RetryPolicy.from_settings(self.ctx.settings)
            )
            if isinstance(outcome, Failed):
                raise GenerationError(
                    outcome.kind, outcome.message, detail=outcome.detail, attempts=calls
                )
            if not isinstance(outcome, Completed):
                raise GenerationError(
                    ErrorKind.PROTOCOL_ERROR, f"{provider.display_name} returned no terminal outcome"
                )
            payload = normalize(outcome.raw, expect=provider.capabilities.output)
        except GenerationError as e:
            metrics.inc_fail(request.provider_id, kind)
            metrics.inc(f"error.{e.kind.value}")
            log.info(
                "provider=%s event=%s.fail kind=%s message=%s",
                request.provider_id,
                kind,
                e.kind.value,
                e.message[:200],
            )
            raise
        metrics.inc_ok(request.provider_id, kind)
        if request.source_images:
            metrics.inc("image.ref.used")
        return payload

    # ---- alt text path ----

    def _run_text_route(self, route: ModelRoute, prompt: str, image: str) -> str:
        settings = self.ctx.settings
        request = GenerationRequest(
            prompt=prompt,
            provider_id=route.provider_id,
            model=route.model,
            source_images=(image,),
        )
        policy = RetryPolicy.fixed(settings.ALT_TEXT_MAX_ATTEMPTS, settings.ALT_TEXT_POLL_DELAY)
        payload = self.orchestrate(request, policy)
        if not isinstance(payload, Text):
            raise GenerationError(ErrorKind.INVALID_RESPONSE, f"{route.provider_id} did not return text")
        return payload.text

    def generate_alt_text(self, prompt: str, image: str, provider_id: Optional[str] = None) -> str:
        if not image:
            raise invalid_parameters("Image data is required for alt text generation.")
        pid = (provider_id or "").strip().lower() or self.ctx.store.active_provider_id(
            self.image_provider_ids()
        )
        route = self.routes.get(pid or "")
        if route is None:
            raise invalid_parameters(f"Alt text generation is not available for provider: {pid}")

        chain = FallbackChain(route, self._run_text_route, self.ctx.settings.QUOTA_SIGNATURES)
        text = chain.generate_with_fallback((prompt or "").strip() or DEFAULT_ALT_TEXT_PROMPT, image)
        self.ctx.metrics.inc("alt_text.generated")
        return text
