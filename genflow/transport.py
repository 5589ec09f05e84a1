# genflow/transport.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union

import requests

log = logging.getLogger(__name__)

Body = Union[bytes, str, None]


class TransportError(Exception):
    """Connection failure, timeout or unusable download."""


@dataclass
class HttpResponse:
    status: int
    body: bytes = b""
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Decoded JSON body, or None when the body is not JSON."""
        if not self.body:
            return None
        try:
            return json.loads(self.body)
        except (ValueError, UnicodeDecodeError):
            return None

    def header(self, name: str) -> Optional[str]:
        lname = name.lower()
        for k, v in self.headers.items():
            if k.lower() == lname:
                return v
        return None


class HttpTransport:
    """Single-shot HTTP calls. Never retries; that belongs to the orchestrator."""

    def __init__(self, session: Optional[requests.Session] = None):
        self._session = session or requests.Session()

    def send(
        self,
        method: str,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        body: Body = None,
        timeout: float = 30,
    ) -> HttpResponse:
        try:
            r = self._session.request(
                method,
                url,
                headers=dict(headers or {}),
                data=body,
                timeout=timeout,
            )
        except requests.exceptions.RequestException as e:
            log.warning("event=http.fail method=%s url=%s error=%s", method, url, e)
            raise TransportError(str(e)) from e
        return HttpResponse(status=r.status_code, body=r.content or b"", headers=dict(r.headers))

    def fetch(self, url: str, timeout: float = 30) -> HttpResponse:
        """GET a reference image; non-2xx or empty bodies count as transport failures."""
        resp = self.send("GET", url, timeout=timeout)
        if not resp.ok:
            raise TransportError(f"Failed to download image: HTTP {resp.status} for {url}")
        if not resp.body:
            raise TransportError(f"Downloaded image data is empty: {url}")
        return resp
