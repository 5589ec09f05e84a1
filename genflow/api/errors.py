# genflow/api/errors.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from genflow.api.envelopes import fail, generation_failure, status_for
from genflow.errors import GenerationError

log = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(GenerationError)
    async def on_generation_error(request: Request, exc: GenerationError):
        if status_for(exc.kind) >= 500:
            log.warning("event=api.fail path=%s kind=%s", request.url.path, exc.kind.value)
        return generation_failure(exc, request)

    @app.exception_handler(RequestValidationError)
    async def on_request_validation_error(request: Request, exc: RequestValidationError):
        return fail(
            "VALIDATION_ERROR",
            "Request validation failed",
            request=request,
            details={"errors": jsonable_encoder(exc.errors())},
            status_code=422,
        )

    @app.exception_handler(StarletteHTTPException)
    async def on_http_exception(request: Request, exc: StarletteHTTPException):
        code = "NOT_FOUND" if exc.status_code == 404 else "HTTP_ERROR"
        return fail(
            code,
            str(exc.detail) if exc.detail else "HTTP error",
            request=request,
            status_code=exc.status_code,
        )
