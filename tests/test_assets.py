# tests/test_assets.py
import json
from pathlib import Path
from urllib.parse import urlparse
from urllib.request import url2pathname

import pytest

from genflow.assets import LocalAssetStore
from genflow.errors import ErrorKind, GenerationError
from genflow.models import ImageBytes, ImageURL, Text

from conftest import FakeTransport, png_bytes


def _path(uri: str) -> Path:
    return Path(url2pathname(urlparse(uri).path))


def test_persist_bytes_writes_png_and_sidecar(tmp_path):
    store = LocalAssetStore(tmp_path / "out", FakeTransport())
    ref = store.persist(ImageBytes(png_bytes((4, 3))), "a red balloon")

    path = _path(ref.url)
    assert path.exists() and path.suffix == ".png"
    assert path.stem == ref.id
    meta = json.loads(path.with_suffix(".json").read_text())
    assert meta["prompt"] == "a red balloon"
    assert meta["size"] == "4x3"
    assert meta["source_url"] is None


def test_persist_url_downloads_first(tmp_path):
    transport = FakeTransport(downloads={"https://x/img.png": png_bytes()})
    ref = LocalAssetStore(tmp_path, transport).persist(ImageURL("https://x/img.png"), "p")
    assert transport.fetched == ["https://x/img.png"]
    assert json.loads(_path(ref.url).with_suffix(".json").read_text())["source_url"] == "https://x/img.png"


def test_failed_download_is_transport_error(tmp_path):
    with pytest.raises(GenerationError) as e:
        LocalAssetStore(tmp_path, FakeTransport()).persist(ImageURL("https://x/gone.png"), "p")
    assert e.value.kind is ErrorKind.TRANSPORT


def test_garbage_bytes_are_rejected(tmp_path):
    with pytest.raises(GenerationError) as e:
        LocalAssetStore(tmp_path, FakeTransport()).persist(ImageBytes(b"nope"), "p")
    assert e.value.kind is ErrorKind.INVALID_RESPONSE


def test_text_cannot_be_stored(tmp_path):
    with pytest.raises(GenerationError):
        LocalAssetStore(tmp_path, FakeTransport()).persist(Text("hi"), "p")
