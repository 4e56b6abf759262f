from __future__ import annotations

import threading

from fleetpin_core.logging import get_logger
from fleetpin_core.stores.interfaces import RemoteStateClient

logger = get_logger(__name__)


class HeartbeatLoop:
    """Registers the device and refreshes ``last_seen`` on a fixed interval."""

    name = "heartbeat"

    def __init__(
        self,
        device_id: str,
        client: RemoteStateClient,
        *,
        interval_s: float,
        unit_name: str | None = None,
        error_retry_s: float | None = None,
    ) -> None:
        self.device_id = device_id
        self.client = client
        self.interval_s = interval_s
        self.unit_name = unit_name
        self.error_retry_s = error_retry_s if error_retry_s is not None else interval_s
        self.beats = 0

    def beat(self) -> None:
        self.client.upsert_heartbeat(self.device_id, self.unit_name)
        self.beats += 1

    def reset(self) -> None:
        return None

    def run(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            delay = self.interval_s
            try:
                self.beat()
            except Exception as exc:
                logger.warning(
                    "Heartbeat failed",
                    extra={"loop": self.name, "error_message": str(exc)},
                )
                delay = min(self.interval_s, self.error_retry_s)
            stop_event.wait(delay)
