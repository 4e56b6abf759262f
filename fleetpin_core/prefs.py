from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import Any

KEY_TARGET_APP = "target_app"
KEY_DEVICE_ID = "device_id"
KEY_UNIT_NAME = "unit_name"


def _atomic_write_json(path: Path, payload: dict[str, Any]) -> None:
    tmp_path = path.with_suffix(".tmp")
    tmp_path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path.write_text(json.dumps(payload, sort_keys=True), encoding="utf-8")
    os.replace(tmp_path, path)


class LocalPreferences:
    """Small JSON key-value file holding the device's local configuration."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            return {}
        return payload if isinstance(payload, dict) else {}

    def get(self, key: str) -> str | None:
        with self._lock:
            value = self._load().get(key)
        if value is None:
            return None
        value = str(value).strip()
        return value or None

    def set(self, key: str, value: str | None) -> None:
        with self._lock:
            payload = self._load()
            if value is None:
                payload.pop(key, None)
            else:
                payload[key] = value
            _atomic_write_json(self.path, payload)

    def as_dict(self) -> dict[str, Any]:
        with self._lock:
            return dict(self._load())

    def target_app(self) -> str | None:
        return self.get(KEY_TARGET_APP)

    def set_target_app(self, app_id: str) -> None:
        cleaned = app_id.strip()
        if not cleaned:
            raise ValueError("Target app id must not be empty")
        self.set(KEY_TARGET_APP, cleaned)

    def device_id(self) -> str | None:
        return self.get(KEY_DEVICE_ID)

    def unit_name(self) -> str | None:
        return self.get(KEY_UNIT_NAME)
