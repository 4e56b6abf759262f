from __future__ import annotations

import threading
from typing import Callable, Iterable, Protocol

from fleetpin_core.logging import get_logger
from fleetpin_core.notify import sd_notify

logger = get_logger(__name__)


class SupervisedLoop(Protocol):
    name: str

    def run(self, stop_event: threading.Event) -> None:
        ...

    def reset(self) -> None:
        ...


class ManagedLoop:
    """Thread bookkeeping for one supervised loop."""

    def __init__(self, loop: SupervisedLoop, stop_event: threading.Event) -> None:
        self.loop = loop
        self.stop_event = stop_event
        self.thread: threading.Thread | None = None
        self.restart_count = 0
        self.last_error: str | None = None

    @property
    def name(self) -> str:
        return self.loop.name

    def is_alive(self) -> bool:
        return self.thread is not None and self.thread.is_alive()

    def start(self) -> None:
        self.thread = threading.Thread(
            target=self._target,
            name=f"fleetpin-{self.name}",
            daemon=True,
        )
        self.thread.start()

    def _target(self) -> None:
        try:
            self.loop.run(self.stop_event)
        except Exception as exc:
            self.last_error = str(exc)
            logger.error(
                "Supervised loop died",
                extra={"loop": self.name, "error_message": str(exc)},
                exc_info=True,
            )

    def join(self, timeout: float | None = None) -> None:
        if self.thread is not None:
            self.thread.join(timeout)


class ServiceSupervisor:
    """Runs every loop on its own thread and restarts the ones that die.

    A dead loop is reset before it is started again: pollers go back to IDLE
    and the reconciler forgets its snapshot. Command ledgers are kept.
    """

    def __init__(
        self,
        loops: Iterable[SupervisedLoop],
        stop_event: threading.Event | None = None,
        *,
        restart_delay_s: float = 1.0,
        check_interval_s: float = 1.0,
        notifier: Callable[[str], bool] = sd_notify,
    ) -> None:
        self.stop_event = stop_event or threading.Event()
        self.managed = [ManagedLoop(loop, self.stop_event) for loop in loops]
        self.restart_delay_s = restart_delay_s
        self.check_interval_s = check_interval_s
        self._notify = notifier
        self._started = False

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        for managed in self.managed:
            managed.start()
        names = ", ".join(managed.name for managed in self.managed)
        logger.info("Supervisor started", extra={"status": names})
        self._notify(f"READY=1\nSTATUS=running {names}")

    def check_once(self) -> list[str]:
        """Restart dead loops; returns the names restarted."""
        restarted: list[str] = []
        for managed in self.managed:
            if managed.is_alive() or self.stop_event.is_set():
                continue
            if self.restart_delay_s > 0 and self.stop_event.wait(self.restart_delay_s):
                break
            managed.loop.reset()
            managed.restart_count += 1
            managed.start()
            restarted.append(managed.name)
            logger.warning(
                "Supervised loop restarted",
                extra={"loop": managed.name, "restart_count": managed.restart_count},
            )
        if restarted:
            self._notify(f"STATUS=restarted {', '.join(restarted)}")
        else:
            self._notify("WATCHDOG=1")
        return restarted

    def run(self) -> None:
        self.start()
        while not self.stop_event.is_set():
            self.check_once()
            self.stop_event.wait(self.check_interval_s)
        self._notify("STOPPING=1")
        for managed in self.managed:
            managed.join(timeout=max(self.check_interval_s, 1.0))
        logger.info("Supervisor stopped")

    def stop(self) -> None:
        self.stop_event.set()

    def status(self) -> dict[str, dict[str, object]]:
        return {
            managed.name: {
                "alive": managed.is_alive(),
                "restart_count": managed.restart_count,
                "last_error": managed.last_error,
            }
            for managed in self.managed
        }
