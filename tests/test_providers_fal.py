# tests/test_providers_fal.py
import pytest

from genflow.config import DEFAULT_QUOTA_SIGNATURES, Settings
from genflow.errors import ErrorKind
from genflow.models import Completed, GenerationRequest, ImageURL, Pending
from genflow.providers.fal_images import FalProvider

from conftest import FAL_KEY, FakeTransport, json_resp


def _provider(transport):
    sigs = Settings(_env_file=None).moderation_signatures_for("fal")
    return FalProvider(FAL_KEY, transport, sigs, DEFAULT_QUOTA_SIGNATURES)


def _req(**kw):
    base = dict(prompt="a lighthouse at dusk", provider_id="fal", model="fal-ai/flux/schnell")
    base.update(kw)
    return GenerationRequest(**base)


def test_key_must_be_longer_than_20():
    p = FalProvider("", FakeTransport())
    assert p.validate_key_format("k" * 21)
    assert not p.validate_key_format("k" * 20)


def test_submit_body_and_headers():
    transport = FakeTransport([json_resp(200, {"status": "IN_QUEUE", "request_id": "req-1"})])
    out = _provider(transport).create(_req(aspect_ratio="4:3"))
    assert out == Pending("req-1", "IN_QUEUE")
    call = transport.calls[0]
    assert call.url == "https://queue.fal.run/fal-ai/flux/schnell"
    assert call.headers["Authorization"] == f"Key {FAL_KEY}"
    assert call.json() == {
        "prompt": "a lighthouse at dusk",
        "aspect_ratio": "4:3",
        "num_inference_steps": 28,
        "guidance_scale": 3.5,
    }


def test_reference_image_uses_flux_dev_with_url():
    transport = FakeTransport([json_resp(200, {"status": "IN_QUEUE", "request_id": "r"})])
    _provider(transport).create(_req(source_images=("https://cdn/ref.jpg",)))
    call = transport.calls[0]
    assert call.url == "https://queue.fal.run/fal-ai/flux/dev"
    assert call.json()["image_url"] == "https://cdn/ref.jpg"
    # fal takes the URL itself, nothing is downloaded
    assert transport.fetched == []


def test_poll_in_progress_then_completed(make_service, transport, sleeps):
    transport.queue(
        json_resp(200, {"status": "IN_QUEUE", "request_id": "r1"}),
        json_resp(200, {"status": "IN_PROGRESS", "request_id": "r1"}),
        json_resp(200, {"status": "COMPLETED", "request_id": "r1", "data": {"images": [{"url": "https://fal.media/o.png"}]}}),
    )
    out = make_service().orchestrate(_req())
    assert out == ImageURL("https://fal.media/o.png")
    assert [c.url for c in transport.calls[1:]] == ["https://queue.fal.run/requests/r1/status"] * 2
    assert sleeps == [3.0, 4.5]


def test_completed_returns_data_node():
    body = {"status": "COMPLETED", "data": {"images": [{"url": "u"}]}}
    assert _provider(FakeTransport([json_resp(200, body)])).poll("r") == Completed(raw={"images": [{"url": "u"}]})


def test_completed_without_data_is_protocol_error():
    out = _provider(FakeTransport([json_resp(200, {"status": "COMPLETED"})])).poll("r")
    assert out.kind is ErrorKind.PROTOCOL_ERROR


def test_failed_status():
    out = _provider(FakeTransport([json_resp(200, {"status": "FAILED"})])).poll("r")
    assert out.kind is ErrorKind.GENERATION_FAILED
    assert not out.retryable


@pytest.mark.parametrize("status", [400, 422])
def test_bad_input_is_invalid_parameters(status):
    body = {"detail": [{"loc": ["body", "num_images"], "msg": "ensure this value is less than 5"}]}
    out = _provider(FakeTransport([json_resp(status, body)])).create(_req())
    assert out.kind is ErrorKind.INVALID_PARAMETERS


def test_safety_rejection_is_moderation():
    body = {"detail": "Image flagged by the safety checker"}
    out = _provider(FakeTransport([json_resp(422, body)])).create(_req())
    assert out.kind is ErrorKind.CONTENT_MODERATION


def test_error_field_is_classified():
    out = _provider(FakeTransport([json_resp(200, {"error": "worker crashed"})])).poll("r")
    assert out.kind is ErrorKind.GENERATION_FAILED
    assert out.message == "worker crashed"
