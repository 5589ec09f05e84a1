# genflow/assets.py
from __future__ import annotations

import io
import json
import logging
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol

from PIL import Image, UnidentifiedImageError

from genflow.errors import ErrorKind, GenerationError
from genflow.models import ImageBytes, ImageURL, Payload
from genflow.providers.base import prompt_hash
from genflow.transport import HttpTransport, TransportError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssetRef:
    url: str
    id: str


class AssetStore(Protocol):
    def persist(self, payload: Payload, prompt: str) -> AssetRef: ...


class LocalAssetStore:
    """
    Save generated images as PNG under the outputs directory, with a JSON
    sidecar holding the prompt. Hosted URLs are downloaded first.
    """

    def __init__(self, root: Path, transport: Optional[HttpTransport] = None):
        self.root = Path(root)
        self.transport = transport or HttpTransport()

    def _outputs_dir(self) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        return self.root

    def persist(self, payload: Payload, prompt: str) -> AssetRef:
        if isinstance(payload, ImageURL):
            try:
                data = self.transport.fetch(payload.url, timeout=60).body
            except TransportError as e:
                raise GenerationError(ErrorKind.TRANSPORT, f"Failed to download image: {e}") from e
            source = payload.url
        elif isinstance(payload, ImageBytes):
            data = payload.data
            source = None
        else:
            raise GenerationError(ErrorKind.INVALID_PARAMETERS, "Only image payloads can be stored")

        try:
            img = Image.open(io.BytesIO(data))
            img.load()
        except (UnidentifiedImageError, OSError) as e:
            raise GenerationError(ErrorKind.INVALID_RESPONSE, "Image data could not be decoded") from e

        image_id = uuid.uuid4().hex
        out_dir = self._outputs_dir()
        path = (out_dir / f"{image_id}.png").resolve()
        img.save(path, format="PNG")

        sidecar = {
            "id": image_id,
            "prompt": prompt,
            "prompt_hash": prompt_hash(prompt),
            "source_url": source,
            "size": f"{img.width}x{img.height}",
            "created_at": int(time.time()),
        }
        path.with_suffix(".json").write_text(json.dumps(sidecar, indent=2), encoding="utf-8")
        log.info("event=asset.persist id=%s path=%s", image_id, path)
        return AssetRef(url=path.as_uri(), id=image_id)
