# tests/test_models.py
import pytest
from pydantic import ValidationError

from genflow.errors import ErrorKind
from genflow.models import Completed, Failed, GenerationRequest, Pending, Quality


def test_pending_requires_job_handle():
    with pytest.raises(ValueError):
        Pending("")
    assert Pending("job123", "starting").job_handle == "job123"


@pytest.mark.parametrize("raw", [None, "", [], {}])
def test_completed_requires_payload(raw):
    with pytest.raises(ValueError):
        Completed(raw=raw)


@pytest.mark.parametrize("raw", ["https://x/img.png", ["u"], {"url": "u"}])
def test_completed_accepts_payload(raw):
    assert Completed(raw=raw).raw == raw


def test_failed_is_not_retryable_unless_said():
    out = Failed(ErrorKind.GENERATION_FAILED, "boom")
    assert out.retryable is False
    assert out.job_handle is None


def test_request_is_frozen_with_defaults():
    req = GenerationRequest(prompt="a fox", provider_id="openai")
    assert req.quality is Quality.MEDIUM
    assert req.aspect_ratio == "1:1"
    assert req.source_images == ()
    with pytest.raises(ValidationError):
        req.prompt = "a wolf"
