# genflow/api/main.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI

from genflow import __version__
from genflow.api.errors import register_error_handlers
from genflow.api.envelopes import ok
from genflow.api.routes_alt_text import router as alt_text_router
from genflow.api.routes_images import router as images_router
from genflow.context import GenerationContext, build_context
from genflow.service import GenerationService

log = logging.getLogger(__name__)


def create_app(context: Optional[GenerationContext] = None) -> FastAPI:
    """
    App factory. The context (settings, registry, transport, metrics) is built
    once here and shared by every request through app.state.
    """
    context = context or build_context()

    app = FastAPI(title="genflow", version=__version__)
    app.state.context = context
    app.state.service = GenerationService(context)
    register_error_handlers(app)

    @app.get("/healthz")
    def healthz():
        """Liveness check: returns 200 if the app process is alive."""
        return {"status": "ok"}

    @app.get("/metrics")
    def metrics():
        return ok(context.metrics.snapshot())

    app.include_router(images_router, prefix="", tags=["images"])
    app.include_router(alt_text_router, prefix="", tags=["alt-text"])
    log.info("event=app.ready providers=%s", context.registry.available())
    return app
