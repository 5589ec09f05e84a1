# genflow/api/envelopes.py
"""
Response bodies for the REST surface: `{ok: true, data}` on success and
`{ok: false, error: {code, message, details}, request_id}` on failure.
"""
from __future__ import annotations

from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from genflow.api.schemas import ErrorEnvelope, ErrorObject, OkEnvelope
from genflow.errors import ErrorKind, GenerationError

REQUEST_ID_HEADER = "x-request-id"
ERROR_KIND_HEADER = "x-genflow-error-kind"

# anything not listed is an upstream failure
STATUS_BY_KIND = {
    ErrorKind.INVALID_PARAMETERS: 400,
    ErrorKind.CONTENT_MODERATION: 400,
    ErrorKind.MAX_RETRIES_EXCEEDED: 500,
}


def status_for(kind: ErrorKind) -> int:
    return STATUS_BY_KIND.get(kind, 502)


def request_id_for(request: Optional[Request]) -> str:
    """Echo the caller's request id when it sent one."""
    rid = request.headers.get(REQUEST_ID_HEADER) if request is not None else None
    return rid or str(uuid4())


def ok(data: Any) -> JSONResponse:
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    return JSONResponse(content=OkEnvelope(ok=True, data=data).model_dump(mode="json"))


def fail(
    code: str,
    message: str,
    *,
    request: Optional[Request] = None,
    details: Optional[Dict[str, Any]] = None,
    status_code: int = 400,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    rid = request_id_for(request)
    body = ErrorEnvelope(
        error=ErrorObject(code=code, message=message, details=details),
        request_id=rid,
    )
    return JSONResponse(
        content=body.model_dump(mode="json"),
        status_code=status_code,
        headers={REQUEST_ID_HEADER: rid, **(headers or {})},
    )


def generation_failure(exc: GenerationError, request: Optional[Request] = None) -> JSONResponse:
    """
    A classified failure. The code is the upper-cased error kind; the raw kind
    also goes out as a header so proxies can route on it without parsing.
    Attempts and provider detail ride along in `details` when present.
    """
    details = {k: v for k, v in exc.to_dict().items() if k not in ("kind", "message")}
    return fail(
        exc.kind.value.upper(),
        exc.message,
        request=request,
        details=details or None,
        status_code=status_for(exc.kind),
        headers={ERROR_KIND_HEADER: exc.kind.value},
    )
