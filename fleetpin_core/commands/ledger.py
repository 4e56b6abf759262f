from __future__ import annotations

import threading


class CommandLedger:
    """Command ids already acted on during this process lifetime.

    Only covers the window where the remote ``executed`` flag has been written
    but is not yet visible to reads. Mark-before-act in the poller is what
    keeps execution at-most-once across restarts.
    """

    def __init__(self) -> None:
        self._ids: set[str] = set()
        self._lock = threading.Lock()

    def is_processed(self, command_id: str) -> bool:
        with self._lock:
            return command_id in self._ids

    def mark_processed(self, command_id: str) -> None:
        with self._lock:
            self._ids.add(command_id)

    def __contains__(self, command_id: object) -> bool:
        return isinstance(command_id, str) and self.is_processed(command_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)
