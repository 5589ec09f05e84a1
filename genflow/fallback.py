# genflow/fallback.py
from __future__ import annotations

import html
import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from genflow.config import DEFAULT_QUOTA_SIGNATURES
from genflow.errors import ErrorKind, GenerationError
from genflow.providers.base import matches_signature

log = logging.getLogger(__name__)

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class ModelRoute:
    provider_id: str
    model: str

    def __str__(self) -> str:
        return f"{self.provider_id}/{self.model}"


@dataclass(frozen=True)
class AltTextRoute:
    primary: ModelRoute
    fallback: Optional[ModelRoute] = None


# Runs one route through validate -> orchestrate -> normalize and returns raw text.
RouteRunner = Callable[[ModelRoute, str, str], str]


def is_capacity_failure(error: GenerationError, signatures: Sequence[str] = DEFAULT_QUOTA_SIGNATURES) -> bool:
    if error.kind is ErrorKind.CONTENT_MODERATION:
        return False
    return matches_signature(error.message, signatures) or matches_signature(error.detail, signatures)


def sanitize_alt_text(text: Optional[str]) -> str:
    """Plain single-line text: no surrounding quotes, no markup, collapsed whitespace."""
    s = (text or "").strip("\" \n\r\t")
    s = html.unescape(_TAG_RE.sub("", s))
    s = _WS_RE.sub(" ", s).strip()
    return s.strip("\" ")


class FallbackChain:
    """
    Primary route first. A quota/capacity failure switches to the fallback
    route exactly once; whatever the fallback does is final.
    """

    def __init__(
        self,
        route: AltTextRoute,
        run_route: RouteRunner,
        signatures: Sequence[str] = DEFAULT_QUOTA_SIGNATURES,
    ):
        self.route = route
        self._run_route = run_route
        self.signatures = list(signatures)

    def generate_with_fallback(self, prompt: str, image: str) -> str:
        primary = self.route.primary
        try:
            text = self._run_route(primary, prompt, image)
        except GenerationError as e:
            fallback = self.route.fallback
            if fallback is None or not is_capacity_failure(e, self.signatures):
                raise
            log.warning(
                "event=alt_text.fallback primary=%s fallback=%s reason=%s",
                primary,
                fallback,
                e.message[:200],
            )
            text = self._run_route(fallback, prompt, image)
            return self._finish(text, fallback)
        return self._finish(text, primary)

    def _finish(self, text: str, route: ModelRoute) -> str:
        clean = sanitize_alt_text(text)
        if not clean:
            raise GenerationError(
                ErrorKind.INVALID_RESPONSE,
                f"{route.provider_id} response did not include alt text.",
            )
        return clean
