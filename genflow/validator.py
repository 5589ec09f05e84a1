# genflow/validator.py
from __future__ import annotations

import logging
from typing import Optional

from genflow.errors import invalid_parameters
from genflow.models import GenerationRequest
from genflow.providers.base import ProviderClient

log = logging.getLogger(__name__)


def validate(request: GenerationRequest, provider: ProviderClient, api_key: Optional[str] = None) -> GenerationRequest:
    """
    Pre-flight checks, run before any network call. Raises
    GenerationError(invalid_parameters) on the first problem found.

    Too many reference images is not an error: the list is cut down to the
    provider's cap (order kept) and the trimmed request is returned.
    """
    caps = provider.capabilities
    key = (provider.api_key if api_key is None else api_key or "").strip()

    if not request.prompt or not request.prompt.strip():
        raise invalid_parameters("Prompt is required")
    if not request.model or not request.model.strip():
        raise invalid_parameters("Model is required")
    if not provider.supports_model(request.model):
        raise invalid_parameters(
            f"Model '{request.model}' is not available for {provider.display_name}"
        )

    if caps.requires_api_key:
        if not key:
            raise invalid_parameters(f"{provider.display_name} API key is required")
        if not provider.validate_key_format(key):
            raise invalid_parameters(f"Invalid {provider.display_name} API key format")

    if caps.requires_source_image and not request.source_images:
        raise invalid_parameters("Image data is required for alt text generation.")

    if request.source_images and not caps.supports_image_to_image:
        raise invalid_parameters(
            f"{provider.display_name} does not support image-to-image generation"
        )

    if len(request.source_images) > caps.max_reference_images:
        log.info(
            "provider=%s event=validate.truncate refs=%s cap=%s",
            provider.name,
            len(request.source_images),
            caps.max_reference_images,
        )
        request = request.model_copy(
            update={"source_images": tuple(request.source_images[: caps.max_reference_images])}
        )
    return request
