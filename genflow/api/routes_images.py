# genflow/api/routes_images.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from genflow.api.deps import get_service
from genflow.api.envelopes import ok
from genflow.api.schemas import GeneratedImage, GenerateImageRequest
from genflow.errors import ErrorKind, GenerationError
from genflow.models import ImageBytes, ImageURL, Quality
from genflow.providers.base import to_data_url
from genflow.service import GenerationService

log = logging.getLogger(__name__)

router = APIRouter()


def _source_images(payload: GenerateImageRequest) -> list[str]:
    """Primary reference first, then the extras, without duplicates."""
    urls = [payload.source_image_url, *payload.additional_image_urls]
    return list(dict.fromkeys(u.strip() for u in urls if u and u.strip()))


# Sync handlers: the orchestrator blocks, so FastAPI runs these in its threadpool.
@router.post("/generate-image")
def generate_image(payload: GenerateImageRequest, service: GenerationService = Depends(get_service)):
    request = service.build_request(
        payload.prompt,
        payload.provider,
        model=payload.model,
        quality=Quality(payload.quality) if payload.quality else None,
        aspect_ratio=payload.aspect_ratio,
        source_images=_source_images(payload),
        mask_url=payload.mask_url,
    )
    result = service.orchestrate(request)

    if payload.persist:
        ref = service.ctx.assets.persist(result, request.prompt)
        return ok(GeneratedImage(url=ref.url, id=ref.id, provider=request.provider_id))
    if isinstance(result, ImageBytes):
        return ok(
            GeneratedImage(
                url=to_data_url(result.data, result.content_type),
                provider=request.provider_id,
                content_type=result.content_type,
            )
        )
    if isinstance(result, ImageURL):
        return ok(GeneratedImage(url=result.url, provider=request.provider_id))
    raise GenerationError(ErrorKind.INVALID_RESPONSE, f"{request.provider_id} did not return an image")


@router.get("/providers")
def providers(service: GenerationService = Depends(get_service)):
    """Image providers that are usable with the configured keys."""
    return ok(service.ctx.store.configured_providers(service.image_provider_ids()))


@router.get("/image-to-image-providers")
def image_to_image_providers(service: GenerationService = Depends(get_service)):
    return ok(service.image_to_image_provider_ids())
