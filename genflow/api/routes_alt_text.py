# genflow/api/routes_alt_text.py
from __future__ import annotations

from fastapi import APIRouter, Depends

from genflow.api.deps import get_service
from genflow.api.envelopes import ok
from genflow.api.schemas import AltTextRequest, AltTextResult
from genflow.service import GenerationService

router = APIRouter()


@router.post("/alt-text")
def alt_text(payload: AltTextRequest, service: GenerationService = Depends(get_service)):
    text = service.generate_alt_text(payload.prompt, payload.image.strip(), payload.provider)
    return ok(AltTextResult(alt_text=text))
