from __future__ import annotations

from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from fleetpin_core.agent import Agent
from fleetpin_core.logging import get_logger
from fleetpin_core.reconcile.types import LifecycleEvent
from fleetpin_core.services.fastapi_scaffolding import (
    HealthResponse,
    add_correlation_id_middleware,
    build_health_response,
)

SERVICE_NAME = "fleetpin-agent-status"

logger = get_logger(__name__)


class StatusResponse(BaseModel):
    device_id: str
    target_app: str | None = None
    reconciler: dict[str, Any]
    pollers: dict[str, dict[str, Any]]
    loops: dict[str, dict[str, Any]]
    heartbeats: int


class LifecycleRequest(BaseModel):
    event: str


class LifecycleResponse(BaseModel):
    event: str
    consumed: bool
    actions: list[str]


def create_app(agent: Agent) -> FastAPI:
    app = FastAPI()
    add_correlation_id_middleware(app)

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        loops = agent.supervisor.status()
        return build_health_response(
            SERVICE_NAME,
            device_id=agent.device_id,
            dead_loops=[name for name, item in loops.items() if not item["alive"]],
        )

    @app.get("/status", response_model=StatusResponse)
    async def status() -> StatusResponse:
        return StatusResponse(**agent.status())

    @app.post("/lifecycle", response_model=LifecycleResponse)
    def lifecycle(payload: LifecycleRequest) -> LifecycleResponse:
        try:
            event = LifecycleEvent(payload.event.strip().lower())
        except ValueError as exc:
            logger.warning("Unknown lifecycle event", extra={"state": payload.event})
            raise HTTPException(
                status_code=400,
                detail=f"Unknown lifecycle event: {payload.event}",
            ) from exc
        decision = agent.handle_lifecycle(event)
        return LifecycleResponse(
            event=decision.event.value,
            consumed=decision.consumed,
            actions=[action.value for action in decision.actions],
        )

    return app
