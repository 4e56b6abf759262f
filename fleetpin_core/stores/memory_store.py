from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone
from typing import Any

from fleetpin_core.commands.types import CommandKind, PendingCommand, command_from_dict
from fleetpin_core.errors import ValidationError
from fleetpin_core.reconcile.types import DEVICE_FLAGS, DesiredState


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def check_flag_name(flag_name: str) -> str:
    if flag_name not in DEVICE_FLAGS:
        allowed = ", ".join(DEVICE_FLAGS)
        raise ValidationError(f"Unknown device flag: {flag_name} (expected {allowed})")
    return flag_name


class InMemoryRemoteStateClient:
    def __init__(self) -> None:
        self.devices: dict[str, dict[str, Any]] = {}
        self.commands: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()

    def fetch_pending_command(
        self,
        device_id: str,
        kind: CommandKind,
    ) -> PendingCommand | None:
        with self._lock:
            for record in self.commands.values():
                if (
                    record.get("device_id") == device_id
                    and record.get("kind") == kind.value
                    and not record.get("executed")
                ):
                    return command_from_dict(record)
        return None

    def mark_executed(self, command_id: str) -> bool:
        with self._lock:
            record = self.commands.get(command_id)
            if record is None:
                return False
            record["executed"] = True
            record["executed_at"] = _now_iso()
            return True

    def delete_command(self, command_id: str) -> bool:
        with self._lock:
            return self.commands.pop(command_id, None) is not None

    def fetch_flag(self, device_id: str, flag_name: str) -> bool | None:
        check_flag_name(flag_name)
        with self._lock:
            record = self.devices.get(device_id)
            if record is None:
                return None
            return bool(record.get(flag_name, False))

    def upsert_heartbeat(self, device_id: str, unit_name: str | None = None) -> None:
        with self._lock:
            record = self.devices.setdefault(
                device_id,
                {"device_id": device_id, "active": False, "kiosk": False},
            )
            record["last_seen"] = _now_iso()
            if unit_name:
                record["unit_name"] = unit_name

    def enqueue_command(self, device_id: str, kind: CommandKind) -> PendingCommand:
        record = {
            "id": str(uuid.uuid4()),
            "device_id": device_id,
            "kind": kind.value,
            "executed": False,
            "created_at": _now_iso(),
            "executed_at": None,
        }
        with self._lock:
            self.commands[record["id"]] = record
        return command_from_dict(record)

    def set_desired_state(
        self,
        device_id: str,
        *,
        active: bool | None = None,
        kiosk: bool | None = None,
    ) -> DesiredState:
        with self._lock:
            record = self.devices.setdefault(
                device_id,
                {"device_id": device_id, "active": False, "kiosk": False},
            )
            if active is not None:
                record["active"] = active
            if kiosk is not None:
                record["kiosk"] = kiosk
            return DesiredState(
                device_id=device_id,
                active=bool(record["active"]),
                kiosk=bool(record["kiosk"]),
            )
