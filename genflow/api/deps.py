# genflow/api/deps.py
from __future__ import annotations

from fastapi import Request

from genflow.service import GenerationService


def get_service(request: Request) -> GenerationService:
    return request.app.state.service
