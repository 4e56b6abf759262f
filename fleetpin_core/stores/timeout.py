from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Callable, TypeVar

from fleetpin_core.commands.types import CommandKind, PendingCommand
from fleetpin_core.errors import TransientRemoteError
from fleetpin_core.stores.interfaces import RemoteStateClient

_T = TypeVar("_T")


class TimedRemoteStateClient:
    """Bounds every remote call by ``timeout_s``.

    A call that overruns raises ``TransientRemoteError`` for the caller, but
    the underlying request is not cancelled: it keeps running on the worker
    thread and its write (if any) still lands. While it runs, further calls
    fail fast instead of queueing behind it.

    Each supervised loop gets its own instance so a hung call only stalls
    the loop that made it.
    """

    def __init__(
        self,
        inner: RemoteStateClient,
        timeout_s: float,
        *,
        max_workers: int = 1,
    ) -> None:
        self.inner = inner
        self.timeout_s = timeout_s
        self._executor = ThreadPoolExecutor(
            max_workers=max(1, max_workers),
            thread_name_prefix="fleetpin-remote",
        )
        self._lock = threading.Lock()
        self._in_flight: Future | None = None

    def _run(self, op: str, fn: Callable[[], _T]) -> _T:
        if self.timeout_s <= 0:
            return fn()
        with self._lock:
            if self._in_flight is not None and not self._in_flight.done():
                raise TransientRemoteError(
                    f"{op} skipped: previous remote call still running"
                )
            future = self._executor.submit(fn)
            self._in_flight = future
        try:
            return future.result(timeout=self.timeout_s)
        except FutureTimeoutError as exc:
            raise TransientRemoteError(
                f"{op} timed out after {self.timeout_s:.2f}s"
            ) from exc

    def fetch_pending_command(
        self,
        device_id: str,
        kind: CommandKind,
    ) -> PendingCommand | None:
        return self._run(
            "fetch_pending_command",
            lambda: self.inner.fetch_pending_command(device_id, kind),
        )

    def mark_executed(self, command_id: str) -> bool:
        return self._run("mark_executed", lambda: self.inner.mark_executed(command_id))

    def delete_command(self, command_id: str) -> bool:
        return self._run(
            "delete_command",
            lambda: self.inner.delete_command(command_id),
        )

    def fetch_flag(self, device_id: str, flag_name: str) -> bool | None:
        return self._run(
            "fetch_flag",
            lambda: self.inner.fetch_flag(device_id, flag_name),
        )

    def upsert_heartbeat(self, device_id: str, unit_name: str | None = None) -> None:
        self._run(
            "upsert_heartbeat",
            lambda: self.inner.upsert_heartbeat(device_id, unit_name),
        )

    def shutdown(self) -> None:
        self._executor.shutdown(wait=False)
