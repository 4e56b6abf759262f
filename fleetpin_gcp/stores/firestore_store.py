from __future__ import annotations

import os
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, TypeVar

from google.api_core import exceptions as gexc
from google.cloud import firestore

from fleetpin_core.commands.types import CommandKind, PendingCommand, command_from_dict
from fleetpin_core.errors import TransientRemoteError
from fleetpin_core.reconcile.types import DesiredState
from fleetpin_core.stores.memory_store import check_flag_name

_T = TypeVar("_T")

DEVICES_COLLECTION = "devices"
COMMANDS_COLLECTION = "commands"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class FirestoreRemoteStateClient:
    """Remote state in two Firestore collections.

    ``devices`` documents are keyed by device id. ``commands`` documents are
    keyed by command id and filtered by ``device_id``/``kind``/``executed``.
    """

    def __init__(
        self,
        client: firestore.Client | None = None,
        *,
        project_id: str | None = None,
        collection_prefix: str | None = None,
        request_timeout_s: float | None = None,
    ) -> None:
        self._client = client or firestore.Client(project=project_id)
        if collection_prefix is None:
            collection_prefix = os.getenv("FIRESTORE_COLLECTION_PREFIX", "")
        self._collection_prefix = collection_prefix.strip()
        self._timeout = request_timeout_s

    def _collection(self, name: str) -> firestore.CollectionReference:
        prefix = self._collection_prefix
        if prefix:
            return self._client.collection(f"{prefix}{name}")
        return self._client.collection(name)

    def _call(self, op: str, fn: Callable[[], _T]) -> _T:
        try:
            return fn()
        except Exception as exc:
            raise TransientRemoteError(f"Firestore {op} failed: {exc}") from exc

    def _doc_payload(self, doc: Any) -> dict[str, Any]:
        data = doc.to_dict() or {}
        if "id" not in data:
            data["id"] = doc.id
        return data

    def fetch_pending_command(
        self,
        device_id: str,
        kind: CommandKind,
    ) -> PendingCommand | None:
        def _fetch() -> PendingCommand | None:
            query = (
                self._collection(COMMANDS_COLLECTION)
                .where("device_id", "==", device_id)
                .where("kind", "==", kind.value)
                .where("executed", "==", False)
                .limit(1)
            )
            for doc in query.stream(timeout=self._timeout):
                return command_from_dict(self._doc_payload(doc))
            return None

        return self._call("fetch_pending_command", _fetch)

    def mark_executed(self, command_id: str) -> bool:
        ref = self._collection(COMMANDS_COLLECTION).document(command_id)

        def _mark() -> bool:
            try:
                ref.update(
                    {"executed": True, "executed_at": _now_iso()},
                    timeout=self._timeout,
                )
            except gexc.NotFound:
                return False
            return True

        return self._call("mark_executed", _mark)

    def delete_command(self, command_id: str) -> bool:
        ref = self._collection(COMMANDS_COLLECTION).document(command_id)

        def _delete() -> bool:
            # Firestore deletes are no-ops for missing documents.
            if not ref.get(timeout=self._timeout).exists:
                return False
            ref.delete(timeout=self._timeout)
            return True

        return self._call("delete_command", _delete)

    def fetch_flag(self, device_id: str, flag_name: str) -> bool | None:
        check_flag_name(flag_name)
        ref = self._collection(DEVICES_COLLECTION).document(device_id)

        def _fetch() -> bool | None:
            snapshot = ref.get(timeout=self._timeout)
            if not snapshot.exists:
                return None
            data = snapshot.to_dict() or {}
            return bool(data.get(flag_name, False))

        return self._call("fetch_flag", _fetch)

    def upsert_heartbeat(self, device_id: str, unit_name: str | None = None) -> None:
        ref = self._collection(DEVICES_COLLECTION).document(device_id)

        def _upsert() -> None:
            snapshot = ref.get(timeout=self._timeout)
            payload: dict[str, Any] = {
                "device_id": device_id,
                "last_seen": _now_iso(),
            }
            if unit_name:
                payload["unit_name"] = unit_name
            if not snapshot.exists:
                payload.update({"active": False, "kiosk": False})
            ref.set(payload, merge=True, timeout=self._timeout)

        self._call("upsert_heartbeat", _upsert)

    def enqueue_command(self, device_id: str, kind: CommandKind) -> PendingCommand:
        command_id = str(uuid.uuid4())
        payload: dict[str, Any] = {
            "id": command_id,
            "device_id": device_id,
            "kind": kind.value,
            "executed": False,
            "created_at": _now_iso(),
            "executed_at": None,
        }
        ref = self._collection(COMMANDS_COLLECTION).document(command_id)
        self._call("enqueue_command", lambda: ref.set(payload, timeout=self._timeout))
        return command_from_dict(payload)

    def set_desired_state(
        self,
        device_id: str,
        *,
        active: bool | None = None,
        kiosk: bool | None = None,
    ) -> DesiredState:
        ref = self._collection(DEVICES_COLLECTION).document(device_id)

        def _set() -> DesiredState:
            current = ref.get(timeout=self._timeout)
            data = (current.to_dict() or {}) if current.exists else {}
            payload: dict[str, Any] = {
                "device_id": device_id,
                "active": bool(data.get("active", False)) if active is None else active,
                "kiosk": bool(data.get("kiosk", False)) if kiosk is None else kiosk,
            }
            ref.set(payload, merge=True, timeout=self._timeout)
            return DesiredState(
                device_id=device_id,
                active=payload["active"],
                kiosk=payload["kiosk"],
            )

        return self._call("set_desired_state", _set)
