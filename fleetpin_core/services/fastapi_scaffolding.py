from __future__ import annotations

import os
import time
import uuid
from typing import Iterable

from fastapi import FastAPI, Request
from pydantic import BaseModel, Field

CORRELATION_HEADER = "x-correlation-id"


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    commit: str
    timestamp: str
    device_id: str | None = None
    dead_loops: list[str] = Field(default_factory=list)


def correlation_id(header_value: str | None) -> str:
    if header_value:
        return header_value
    return str(uuid.uuid4())


def add_correlation_id_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def _add_correlation_id(request: Request, call_next):
        corr = correlation_id(request.headers.get(CORRELATION_HEADER))
        request.state.correlation_id = corr
        response = await call_next(request)
        response.headers[CORRELATION_HEADER] = corr
        return response


def build_health_response(
    service_name: str,
    *,
    device_id: str | None = None,
    dead_loops: Iterable[str] = (),
    version: str | None = None,
    commit: str | None = None,
) -> HealthResponse:
    """Health payload for an agent; any dead supervised loop degrades it."""
    dead = sorted(dead_loops)
    return HealthResponse(
        status="degraded" if dead else "ok",
        service=service_name,
        version=version or os.getenv("FLEETPIN_VERSION", "dev"),
        commit=commit or os.getenv("GIT_COMMIT", "unknown"),
        timestamp=time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        device_id=device_id,
        dead_loops=dead,
    )
