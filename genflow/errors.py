# genflow/errors.py
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional

CONTENT_MODERATION_MESSAGE = (
    "Your prompt contains content that violates AI safety guidelines. "
    "Please modify your prompt and try again."
)


class ErrorKind(str, Enum):
    TRANSPORT = "transport"
    PENDING = "pending"
    CONTENT_MODERATION = "content_moderation"
    GENERATION_FAILED = "generation_failed"
    PROTOCOL_ERROR = "protocol_error"
    INVALID_PARAMETERS = "invalid_parameters"
    INVALID_RESPONSE = "invalid_response"
    MAX_RETRIES_EXCEEDED = "max_retries_exceeded"

    @property
    def retryable(self) -> bool:
        return self in (ErrorKind.TRANSPORT, ErrorKind.PENDING)


class GenerationError(Exception):
    """
    Terminal, classified failure surfaced to callers.

    `message` is safe to show to a user; `detail` keeps the raw provider text
    (when there was one) so callers can match on it.
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        detail: Optional[str] = None,
        attempts: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.detail = detail
        self.attempts = attempts

    def __repr__(self) -> str:
        return f"GenerationError(kind={self.kind.value!r}, message={self.message!r})"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": self.kind.value, "message": self.message}
        if self.detail and self.detail != self.message:
            data["detail"] = self.detail
        if self.attempts is not None:
            data["attempts"] = self.attempts
        return data


def invalid_parameters(message: str) -> GenerationError:
    return GenerationError(ErrorKind.INVALID_PARAMETERS, message)
