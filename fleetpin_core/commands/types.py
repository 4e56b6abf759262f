from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class CommandKind(str, Enum):
    REBOOT = "reboot"
    RESTART_APP = "restart_app"

    @classmethod
    def parse(cls, value: str) -> "CommandKind":
        normalized = value.strip().lower().replace("-", "_")
        for kind in cls:
            if kind.value == normalized:
                return kind
        allowed = ", ".join(kind.value for kind in cls)
        raise ValueError(f"Unknown command kind: {value} (expected one of {allowed})")


class PollerState(str, Enum):
    IDLE = "idle"
    EXECUTING = "executing"


class TickOutcome(str, Enum):
    SKIPPED_BUSY = "skipped_busy"
    NO_COMMAND = "no_command"
    ALREADY_PROCESSED = "already_processed"
    MARK_FAILED = "mark_failed"
    EXECUTED = "executed"
    FAILED = "failed"


@dataclass(frozen=True)
class PendingCommand:
    id: str
    device_id: str
    kind: CommandKind
    executed: bool
    created_at: str
    executed_at: str | None = None


def command_from_dict(payload: dict[str, object]) -> PendingCommand:
    executed_at = payload.get("executed_at")
    return PendingCommand(
        id=str(payload.get("id")),
        device_id=str(payload.get("device_id", "")),
        kind=CommandKind.parse(str(payload.get("kind", ""))),
        executed=bool(payload.get("executed", False)),
        created_at=str(payload.get("created_at", "")),
        executed_at=str(executed_at) if executed_at else None,
    )
