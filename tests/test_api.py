# tests/test_api.py
from __future__ import annotations

from fastapi.testclient import TestClient

from genflow.api.main import create_app
from genflow.context import build_context

from conftest import FakeTransport, json_resp, make_settings


def _client(tmp_path, transport=None, **overrides) -> TestClient:
    overrides.setdefault("GENFLOW_PROVIDER", "stub")
    ctx = build_context(
        make_settings(tmp_path, **overrides),
        transport=transport or FakeTransport(),
        sleep=lambda s: None,
    )
    return TestClient(create_app(ctx))


def test_healthz(tmp_path):
    r = _client(tmp_path).get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_generate_with_stub_returns_data_url(tmp_path):
    r = _client(tmp_path).post("/generate-image", json={"prompt": "a red balloon"})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["ok"] is True
    assert body["data"]["status"] == "completed"
    assert body["data"]["provider"] == "stub"
    assert body["data"]["url"].startswith("data:image/png;base64,")


def test_generate_and_persist(tmp_path):
    r = _client(tmp_path).post("/generate-image", json={"prompt": "a red balloon", "persist": True})
    data = r.json()["data"]
    assert data["url"].startswith("file://")
    assert (tmp_path / "outputs" / f"{data['id']}.png").exists()


def test_generate_hosted_url_passthrough(tmp_path):
    transport = FakeTransport([json_resp(200, {"data": [{"url": "https://x/img.png"}]})])
    r = _client(tmp_path, transport).post(
        "/generate-image", json={"prompt": "a red balloon", "provider": "openai", "quality": "low"}
    )
    assert r.status_code == 200, r.text
    assert r.json()["data"]["url"] == "https://x/img.png"
    assert transport.calls[0].json()["quality"] == "low"


def test_source_and_additional_images_are_merged(tmp_path):
    transport = FakeTransport(
        [json_resp(200, {"data": [{"url": "https://x/edit.png"}]})],
        downloads={"https://cdn/a.png": b"A", "https://cdn/b.png": b"B"},
    )
    r = _client(tmp_path, transport).post(
        "/generate-image",
        json={
            "prompt": "make it blue",
            "provider": "openai",
            "source_image_url": "https://cdn/a.png",
            "additional_image_urls": ["https://cdn/b.png", "https://cdn/a.png"],
        },
    )
    assert r.status_code == 200, r.text
    assert transport.fetched == ["https://cdn/a.png", "https://cdn/b.png"]


def test_empty_prompt_is_400(tmp_path):
    r = _client(tmp_path).post("/generate-image", json={"prompt": ""})
    assert r.status_code == 400
    body = r.json()
    assert body["ok"] is False
    assert body["error"]["code"] == "INVALID_PARAMETERS"
    assert body["request_id"]


def test_moderation_is_400_with_rephrase_message(tmp_path):
    transport = FakeTransport([json_resp(400, {"detail": "flagged by safety filters"})])
    r = _client(tmp_path, transport).post("/generate-image", json={"prompt": "x", "provider": "replicate"})
    assert r.status_code == 400
    err = r.json()["error"]
    assert err["code"] == "CONTENT_MODERATION"
    assert "modify your prompt" in err["message"]


def test_generation_failure_is_502(tmp_path):
    r = _client(tmp_path).post("/generate-image", json={"prompt": "force_fail please"})
    assert r.status_code == 502
    assert r.json()["error"]["code"] == "GENERATION_FAILED"


def test_retry_exhaustion_is_500_with_attempts(tmp_path):
    transport = FakeTransport(
        [
            json_resp(201, {"status": "starting", "id": "j"}),
            json_resp(200, {"status": "processing", "id": "j"}),
        ]
    )
    r = _client(tmp_path, transport, RETRY_MAX_ATTEMPTS=2).post(
        "/generate-image", json={"prompt": "x", "provider": "replicate"}
    )
    assert r.status_code == 500
    err = r.json()["error"]
    assert err["code"] == "MAX_RETRIES_EXCEEDED"
    assert err["details"]["attempts"] == 2
    assert "Failed after 2 attempts" in err["message"]


def test_request_validation_envelope(tmp_path):
    r = _client(tmp_path).post("/generate-image", json={"prompt": "x", "quality": "ultra"})
    assert r.status_code == 422
    assert r.json()["error"]["code"] == "VALIDATION_ERROR"


def test_alt_text_endpoint(tmp_path):
    transport = FakeTransport([json_resp(200, {"output_text": '"A lighthouse on a cliff at dusk."'})])
    r = _client(tmp_path, transport).post(
        "/alt-text", json={"image": "https://cdn/photo.jpg", "provider": "openai"}
    )
    assert r.status_code == 200, r.text
    assert r.json()["data"] == {"alt_text": "A lighthouse on a cliff at dusk."}


def test_alt_text_without_image_is_400(tmp_path):
    r = _client(tmp_path).post("/alt-text", json={"prompt": "d", "provider": "openai"})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "INVALID_PARAMETERS"


def test_providers_lists_configured(tmp_path):
    r = _client(tmp_path, FAL_KEY="").get("/providers")
    assert r.json()["data"] == ["openai", "replicate", "stub"]


def test_image_to_image_providers(tmp_path):
    r = _client(tmp_path).get("/image-to-image-providers")
    assert set(r.json()["data"]) == {"openai", "replicate", "fal", "stub"}


def test_metrics_endpoint(tmp_path):
    client = _client(tmp_path)
    client.post("/generate-image", json={"prompt": "a"})
    client.post("/generate-image", json={"prompt": "force_fail"})
    snap = client.get("/metrics").json()["data"]
    assert snap["image.ok.stub"] == 1
    assert snap["image.fail.stub"] == 1


def test_non_image_result_is_502(tmp_path, monkeypatch):
    from genflow.models import Text
    from genflow.service import GenerationService

    monkeypatch.setattr(GenerationService, "orchestrate", lambda self, request, policy=None: Text("hi"))
    r = _client(tmp_path).post("/generate-image", json={"prompt": "x"})
    assert r.status_code == 502
    assert r.json()["error"]["code"] == "INVALID_RESPONSE"


def test_failure_carries_kind_and_echoed_request_id_headers(tmp_path):
    r = _client(tmp_path).post(
        "/generate-image", json={"prompt": "force_fail"}, headers={"x-request-id": "abc-123"}
    )
    assert r.status_code == 502
    assert r.headers["x-genflow-error-kind"] == "generation_failed"
    assert r.headers["x-request-id"] == "abc-123"
    assert r.json()["request_id"] == "abc-123"
