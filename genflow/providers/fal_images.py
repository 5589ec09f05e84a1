# genflow/providers/fal_images.py
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from genflow.errors import ErrorKind
from genflow.models import Completed, GenerationRequest, Pending, ProviderOutcome, Quality
from genflow.transport import HttpResponse, TransportError

from .base import BodyStyle, Completion, ProviderCapabilities, ProviderClient, bounded_timeout

log = logging.getLogger(__name__)

QUEUE_URL = "https://queue.fal.run/"
IMAGE_TO_IMAGE_MODEL = "fal-ai/flux/dev"

PENDING_STATUSES = ("IN_QUEUE", "IN_PROGRESS")

_MODEL_BY_QUALITY = {
    Quality.LOW: "fal-ai/flux/schnell",
    Quality.MEDIUM: "fal-ai/flux/dev",
    Quality.HIGH: "fal-ai/imagen4/preview",
}


class FalProvider(ProviderClient):
    """fal.ai queue API: submit, then poll the request status."""

    name = "fal"
    display_name = "fal.ai"
    capabilities = ProviderCapabilities(
        models=(
            "fal-ai/flux/schnell",
            "fal-ai/flux/dev",
            "fal-ai/fast-sdxl",
            "fal-ai/imagen4/preview",
        ),
        supports_image_to_image=True,
        max_reference_images=1,
        image_body_style=BodyStyle.JSON,
        completion=Completion.JOB,
    )

    create_timeout = 15
    poll_timeout = 8

    @classmethod
    def model_for_quality(cls, quality: Quality) -> str:
        return _MODEL_BY_QUALITY.get(quality, _MODEL_BY_QUALITY[Quality.MEDIUM])

    def validate_key_format(self, key: str) -> bool:
        return bool(key) and len(key) > 20

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Key {self.api_key}",
            "Content-Type": "application/json",
        }

    def create(self, request: GenerationRequest, timeout: Optional[float] = None) -> ProviderOutcome:
        model = request.model
        body: Dict[str, Any] = {"prompt": request.prompt}
        if request.source_images:
            model = IMAGE_TO_IMAGE_MODEL
            body["image_url"] = request.source_images[0]
        body["aspect_ratio"] = request.aspect_ratio or "1:1"
        body["num_inference_steps"] = 28
        body["guidance_scale"] = 3.5

        try:
            resp = self.transport.send(
                "POST",
                f"{QUEUE_URL}{model}",
                headers=self._headers(),
                body=json.dumps(body),
                timeout=bounded_timeout(self.create_timeout, timeout),
            )
        except TransportError as e:
            return self._transport_failure(e)
        log.info("provider=fal event=queue.submit status=%s model=%s", resp.status, model)
        return self._map_response(resp)

    def poll(self, job_handle: str, timeout: Optional[float] = None) -> ProviderOutcome:
        try:
            resp = self.transport.send(
                "GET",
                f"{QUEUE_URL}requests/{job_handle}/status",
                headers=self._headers(),
                timeout=bounded_timeout(self.poll_timeout, timeout),
            )
        except TransportError as e:
            return self._transport_failure(e, job_handle=job_handle)
        log.debug("provider=fal event=queue.poll status=%s id=%s", resp.status, job_handle)
        return self._map_response(resp, job_handle=job_handle)

    def _map_response(self, resp: HttpResponse, job_handle: Optional[str] = None) -> ProviderOutcome:
        if resp.status in (400, 422):
            # fal reports both bad input and rejected prompts this way
            return self._http_failure(resp, default_kind=ErrorKind.INVALID_PARAMETERS)
        if resp.status >= 400:
            return self._http_failure(resp, job_handle=job_handle)

        body = resp.json()
        if not isinstance(body, dict):
            return self._protocol_error("Invalid response format from fal.ai")

        error = body.get("error")
        if error:
            text = error if isinstance(error, str) else json.dumps(error)
            return self._classify_failure(text)

        status = body.get("status")
        if status == "FAILED":
            return self._classify_failure(str(body.get("message") or "fal.ai generation failed"))
        if status == "COMPLETED":
            data = body.get("data")
            if data:
                return Completed(raw=data)
            return self._protocol_error("fal.ai request completed without data")

        request_id = body.get("request_id") or job_handle
        if status in PENDING_STATUSES and request_id:
            return Pending(job_handle=str(request_id), status=status)

        return self._protocol_error(f"Unexpected fal.ai response (status={status})")
