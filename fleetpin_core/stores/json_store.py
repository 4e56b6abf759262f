from __future__ import annotations

import json
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, TypeVar

import fsspec

from fleetpin_core.commands.types import CommandKind, PendingCommand, command_from_dict
from fleetpin_core.errors import TransientRemoteError
from fleetpin_core.reconcile.types import DesiredState
from fleetpin_core.stores.memory_store import check_flag_name
from fleetpin_core.stores.paths import commands_uri, devices_uri

_T = TypeVar("_T")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _load_items(uri: str, key: str) -> list[dict[str, Any]]:
    fs, path = fsspec.core.url_to_fs(uri)
    if not fs.exists(path):
        return []
    with fs.open(path, "rb") as handle:
        payload = json.loads(handle.read().decode("utf-8"))
    items = payload.get(key, []) if isinstance(payload, dict) else []
    return [item for item in items if isinstance(item, dict)]


def _save_items(uri: str, key: str, items: list[dict[str, Any]]) -> str:
    fs, path = fsspec.core.url_to_fs(uri)
    fs.makedirs("/".join(path.split("/")[:-1]), exist_ok=True)
    payload = {
        "updated_at": _now_iso(),
        key: items,
    }
    with fs.open(path, "wb") as handle:
        handle.write(json.dumps(payload, ensure_ascii=True).encode("utf-8"))
    return uri


class JsonRemoteStateClient:
    """Remote state kept as two JSON documents on any fsspec filesystem.

    Mirrors the ``devices``/``commands`` tables; used for local setups and
    shared-bucket deployments without a database.
    """

    def __init__(self, base_uri: str) -> None:
        self._base_uri = base_uri
        self._lock = threading.Lock()

    def _guarded(self, op: str, fn: Callable[[], _T]) -> _T:
        try:
            with self._lock:
                return fn()
        except (OSError, ValueError) as exc:
            raise TransientRemoteError(f"JSON store {op} failed: {exc}") from exc

    def _commands(self) -> list[dict[str, Any]]:
        return _load_items(commands_uri(self._base_uri), "commands")

    def _devices(self) -> list[dict[str, Any]]:
        return _load_items(devices_uri(self._base_uri), "devices")

    def fetch_pending_command(
        self,
        device_id: str,
        kind: CommandKind,
    ) -> PendingCommand | None:
        def _fetch() -> PendingCommand | None:
            for item in self._commands():
                if (
                    item.get("device_id") == device_id
                    and item.get("kind") == kind.value
                    and not item.get("executed")
                ):
                    return command_from_dict(item)
            return None

        return self._guarded("fetch_pending_command", _fetch)

    def mark_executed(self, command_id: str) -> bool:
        def _mark() -> bool:
            items = self._commands()
            for item in items:
                if item.get("id") == command_id:
                    item["executed"] = True
                    item["executed_at"] = _now_iso()
                    _save_items(commands_uri(self._base_uri), "commands", items)
                    return True
            return False

        return self._guarded("mark_executed", _mark)

    def delete_command(self, command_id: str) -> bool:
        def _delete() -> bool:
            items = self._commands()
            remaining = [item for item in items if item.get("id") != command_id]
            if len(remaining) == len(items):
                return False
            _save_items(commands_uri(self._base_uri), "commands", remaining)
            return True

        return self._guarded("delete_command", _delete)

    def fetch_flag(self, device_id: str, flag_name: str) -> bool | None:
        check_flag_name(flag_name)

        def _fetch() -> bool | None:
            for item in self._devices():
                if item.get("device_id") == device_id:
                    return bool(item.get(flag_name, False))
            return None

        return self._guarded("fetch_flag", _fetch)

    def upsert_heartbeat(self, device_id: str, unit_name: str | None = None) -> None:
        def _upsert() -> None:
            items = self._devices()
            record = _find_or_append(items, device_id)
            record["last_seen"] = _now_iso()
            if unit_name:
                record["unit_name"] = unit_name
            _save_items(devices_uri(self._base_uri), "devices", items)

        self._guarded("upsert_heartbeat", _upsert)

    def enqueue_command(self, device_id: str, kind: CommandKind) -> PendingCommand:
        record: dict[str, Any] = {
            "id": str(uuid.uuid4()),
            "device_id": device_id,
            "kind": kind.value,
            "executed": False,
            "created_at": _now_iso(),
            "executed_at": None,
        }

        def _enqueue() -> PendingCommand:
            items = self._commands()
            items.append(record)
            _save_items(commands_uri(self._base_uri), "commands", items)
            return command_from_dict(record)

        return self._guarded("enqueue_command", _enqueue)

    def set_desired_state(
        self,
        device_id: str,
        *,
        active: bool | None = None,
        kiosk: bool | None = None,
    ) -> DesiredState:
        def _set() -> DesiredState:
            items = self._devices()
            record = _find_or_append(items, device_id)
            if active is not None:
                record["active"] = active
            if kiosk is not None:
                record["kiosk"] = kiosk
            _save_items(devices_uri(self._base_uri), "devices", items)
            return DesiredState(
                device_id=device_id,
                active=bool(record.get("active", False)),
                kiosk=bool(record.get("kiosk", False)),
            )

        return self._guarded("set_desired_state", _set)


def _find_or_append(items: list[dict[str, Any]], device_id: str) -> dict[str, Any]:
    for item in items:
        if item.get("device_id") == device_id:
            return item
    record: dict[str, Any] = {
        "device_id": device_id,
        "active": False,
        "kiosk": False,
        "registered_at": _now_iso(),
    }
    items.append(record)
    return record
