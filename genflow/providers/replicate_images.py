# genflow/providers/replicate_images.py
from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from genflow.errors import ErrorKind
from genflow.models import Completed, GenerationRequest, Pending, ProviderOutcome, Quality
from genflow.transport import HttpResponse, TransportError

from .base import (
    BodyStyle,
    Completion,
    ProviderCapabilities,
    ProviderClient,
    bounded_timeout,
    mime_type_for,
    to_data_url,
)

log = logging.getLogger(__name__)

MODELS_URL = "https://api.replicate.com/v1/models/"
PREDICTIONS_URL = "https://api.replicate.com/v1/predictions/"
IMAGE_TO_IMAGE_MODEL = "black-forest-labs/flux-kontext-pro"

PENDING_STATUSES = ("starting", "processing")

_MODEL_BY_QUALITY = {
    Quality.LOW: "black-forest-labs/flux-schnell",
    Quality.MEDIUM: "recraft-ai/recraft-v3",
    Quality.HIGH: "google/imagen-3",
}


class ReplicatePredictions(ProviderClient):
    """
    Shared plumbing for Replicate's prediction API: create with a short
    synchronous wait, then poll by prediction id.
    """

    create_timeout = 15
    poll_timeout = 8

    def validate_key_format(self, key: str) -> bool:
        # Replicate tokens are 40 characters
        return bool(key) and len(key) == 40

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Token {self.api_key}",
            "Content-Type": "application/json",
            "Prefer": "wait=10",
        }

    def _post_prediction(
        self, model: str, input_data: Dict[str, Any], timeout: Optional[float] = None
    ) -> ProviderOutcome:
        try:
            resp = self.transport.send(
                "POST",
                f"{MODELS_URL}{model}/predictions",
                headers=self._headers(),
                body=json.dumps({"input": input_data}),
                timeout=bounded_timeout(self.create_timeout, timeout),
            )
        except TransportError as e:
            return self._transport_failure(e)
        log.info("provider=%s event=prediction.create status=%s model=%s", self.name, resp.status, model)
        return self._map_prediction(resp)

    def poll(self, job_handle: str, timeout: Optional[float] = None) -> ProviderOutcome:
        try:
            resp = self.transport.send(
                "GET",
                f"{PREDICTIONS_URL}{job_handle}",
                headers={"Authorization": f"Token {self.api_key}"},
                timeout=bounded_timeout(self.poll_timeout, timeout),
            )
        except TransportError as e:
            return self._transport_failure(e, job_handle=job_handle)
        log.debug("provider=%s event=prediction.poll status=%s id=%s", self.name, resp.status, job_handle)
        return self._map_prediction(resp, job_handle=job_handle)

    def _completed(self, output: Any) -> ProviderOutcome:
        if not output:
            return self._protocol_error("Replicate prediction succeeded without output")
        return Completed(raw=output)

    def _map_prediction(self, resp: HttpResponse, job_handle: Optional[str] = None) -> ProviderOutcome:
        body = resp.json()
        if resp.status >= 400:
            return self._http_failure(resp, job_handle=job_handle)
        if not isinstance(body, dict):
            return self._protocol_error("Invalid response format from Replicate")

        status = body.get("status") or "unknown"
        error = body.get("error")
        if isinstance(error, (dict, list)):
            error = json.dumps(error)

        if status == "failed" or error:
            # moderation text can hide in the logs as well as the error field
            text = " ".join(str(part) for part in (error, body.get("logs")) if part)
            failed = self._classify_failure(text)
            if failed.kind is ErrorKind.CONTENT_MODERATION:
                return failed
            message = str(error) if error else "Image generation failed"
            return self._classify_failure(message)

        if status == "succeeded":
            return self._completed(body.get("output"))

        if status == "canceled":
            return self._classify_failure("Prediction was canceled")

        prediction_id = body.get("id") or job_handle
        if status in PENDING_STATUSES and prediction_id:
            return Pending(job_handle=str(prediction_id), status=status)

        return self._protocol_error(f"No image data in Replicate response (status={status})")


class ReplicateProvider(ReplicatePredictions):
    name = "replicate"
    display_name = "Replicate"
    capabilities = ProviderCapabilities(
        models=(
            "black-forest-labs/flux-schnell",
            "black-forest-labs/flux-1.1-pro",
            "recraft-ai/recraft-v3",
            "google/imagen-3",
        ),
        supports_image_to_image=True,
        max_reference_images=1,
        image_body_style=BodyStyle.JSON,
        completion=Completion.JOB,
    )

    @classmethod
    def model_for_quality(cls, quality: Quality) -> str:
        return _MODEL_BY_QUALITY.get(quality, _MODEL_BY_QUALITY[Quality.MEDIUM])

    def create(self, request: GenerationRequest, timeout: Optional[float] = None) -> ProviderOutcome:
        input_data: Dict[str, Any] = {"prompt": request.prompt}
        model = request.model

        if request.source_images:
            model = IMAGE_TO_IMAGE_MODEL
            url = request.source_images[0]
            try:
                resp = self.transport.fetch(url, timeout=bounded_timeout(30, timeout))
            except TransportError as e:
                return self._transport_failure(e)
            ctype = resp.header("content-type") or mime_type_for(url, default="image/jpeg")
            input_data["input_image"] = to_data_url(resp.body, ctype.split(";")[0].strip())

        if request.aspect_ratio:
            input_data["aspect_ratio"] = request.aspect_ratio
        return self._post_prediction(model, input_data, timeout)
