from __future__ import annotations

import hashlib
import uuid

from fleetpin_core.logging import get_logger
from fleetpin_core.prefs import KEY_DEVICE_ID, LocalPreferences

logger = get_logger(__name__)

# Shared by every emulator and many early Android builds; not unique.
BROKEN_HARDWARE_ID = "9774d56d682e549c"
_ID_NAMESPACE = "fleetpin:"


def derive_device_id(hardware_id: str | None) -> str:
    cleaned = (hardware_id or "").strip()
    if not cleaned or cleaned.lower() == BROKEN_HARDWARE_ID:
        return uuid.uuid4().hex
    digest = hashlib.sha256(f"{_ID_NAMESPACE}{cleaned}".encode("utf-8")).hexdigest()
    return digest[:32]


def resolve_device_id(
    prefs: LocalPreferences,
    hardware_id: str | None,
    override: str | None = None,
) -> str:
    """Return the device id, deriving and persisting it on first use.

    An explicit override wins and is not persisted. Otherwise the stored id is
    reused, so the value stays fixed even if the hardware id later changes.
    """
    if override:
        return override
    stored = prefs.device_id()
    if stored:
        return stored
    device_id = derive_device_id(hardware_id)
    prefs.set(KEY_DEVICE_ID, device_id)
    logger.info(
        "Device id derived",
        extra={"device_id": device_id},
    )
    return device_id
