# tests/test_validator.py
import pytest

from genflow.errors import ErrorKind, GenerationError
from genflow.models import GenerationRequest
from genflow.providers.fal_images import FalProvider
from genflow.providers.openai_images import OpenAIProvider
from genflow.providers.openai_text import OpenAITextProvider
from genflow.providers.replicate_images import ReplicateProvider
from genflow.providers.stub import StubProvider
from genflow.validator import validate

from conftest import OPENAI_KEY, REPLICATE_KEY, FakeTransport


def _openai(key=OPENAI_KEY):
    return OpenAIProvider(key, FakeTransport())


def _req(**kw):
    base = dict(prompt="a red balloon", provider_id="openai", model="gpt-image-1.5")
    base.update(kw)
    return GenerationRequest(**base)


def _kind(fn):
    with pytest.raises(GenerationError) as e:
        fn()
    return e.value.kind


@pytest.mark.parametrize("prompt", ["", "   ", "\n"])
def test_empty_prompt(prompt):
    assert _kind(lambda: validate(_req(prompt=prompt), _openai())) is ErrorKind.INVALID_PARAMETERS


def test_empty_model():
    assert _kind(lambda: validate(_req(model=""), _openai())) is ErrorKind.INVALID_PARAMETERS


def test_model_not_offered_by_provider():
    with pytest.raises(GenerationError) as e:
        validate(_req(model="dall-e-2"), _openai())
    assert "dall-e-2" in e.value.message


def test_missing_key():
    with pytest.raises(GenerationError) as e:
        validate(_req(), _openai(key=""))
    assert "API key is required" in e.value.message


def test_malformed_key():
    with pytest.raises(GenerationError) as e:
        validate(_req(), _openai(key="not-a-key"))
    assert "Invalid OpenAI API key format" in e.value.message


def test_explicit_key_argument_overrides_client_key():
    assert validate(_req(), _openai(key=""), api_key=OPENAI_KEY) == _req()


def test_stub_needs_no_key():
    req = _req(provider_id="stub", model="placeholder")
    assert validate(req, StubProvider("", FakeTransport())) is req


def test_truncates_reference_images_to_cap():
    refs = tuple(f"https://cdn/{i}.png" for i in range(3))
    req = _req(provider_id="replicate", model="recraft-ai/recraft-v3", source_images=refs)
    out = validate(req, ReplicateProvider(REPLICATE_KEY, FakeTransport()))
    assert out.source_images == ("https://cdn/0.png",)
    # the input request is untouched
    assert req.source_images == refs


def test_openai_allows_sixteen_references():
    refs = tuple(f"https://cdn/{i}.png" for i in range(20))
    out = validate(_req(source_images=refs), _openai())
    assert out.source_images == refs[:16]


def test_text_provider_requires_image():
    req = GenerationRequest(prompt="d", provider_id="openai-text", model="gpt-5.2")
    p = OpenAITextProvider(OPENAI_KEY, FakeTransport())
    with pytest.raises(GenerationError) as e:
        validate(req, p)
    assert "Image data is required" in e.value.message


def test_fal_model_list():
    p = FalProvider("f" * 30, FakeTransport())
    req = _req(provider_id="fal", model="fal-ai/fast-sdxl")
    assert validate(req, p) is req
    assert _kind(lambda: validate(_req(provider_id="fal", model="sdxl"), p)) is ErrorKind.INVALID_PARAMETERS
