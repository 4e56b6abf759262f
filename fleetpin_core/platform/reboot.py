from __future__ import annotations

import threading
from typing import Protocol, Sequence

from fleetpin_core.errors import PermissionMissing, SideEffectFailure
from fleetpin_core.logging import get_logger
from fleetpin_core.platform.interfaces import RebootStrategy
from fleetpin_core.platform.shell import ShellResult

logger = get_logger(__name__)

DEVICE_ADMIN_RECEIVER = ".receiver.DeviceAdminReceiver"


class ShellRunner(Protocol):
    def run(self, *args: str, timeout_s: float | None = None) -> ShellResult:
        ...


class DeviceAdminReboot:
    """Reboot through the controller app's device-admin grant."""

    name = "device_admin"

    def __init__(self, shell: ShellRunner, controller_app_id: str) -> None:
        self.shell = shell
        self.controller_app_id = controller_app_id

    @property
    def admin_component(self) -> str:
        return f"{self.controller_app_id}/{DEVICE_ADMIN_RECEIVER}"

    def is_admin_active(self) -> bool:
        result = self.shell.run("dumpsys", "device_policy")
        return result.ok and self.controller_app_id in result.stdout

    def reboot(self) -> bool:
        if not self.is_admin_active():
            raise PermissionMissing(
                f"Device admin not active for {self.controller_app_id}"
            )
        result = self.shell.run(
            "am",
            "broadcast",
            "-a",
            f"{self.controller_app_id}.action.REBOOT",
            "-p",
            self.controller_app_id,
        )
        return result.ok

    def request_privilege(self) -> None:
        self.shell.run("dpm", "set-active-admin", self.admin_component)


class SuperuserReboot:
    name = "superuser"

    def __init__(self, shell: ShellRunner) -> None:
        self.shell = shell

    def reboot(self) -> bool:
        return self.shell.run("su", "-c", "reboot").ok

    def request_privilege(self) -> None:
        return None


class RawReboot:
    name = "raw"

    def __init__(self, shell: ShellRunner) -> None:
        self.shell = shell

    def reboot(self) -> bool:
        return self.shell.run("reboot").ok

    def request_privilege(self) -> None:
        return None


class RebootChain:
    """Tries each strategy in order; the first one that reports success wins.

    A strategy missing its privilege gets one re-request per process, then
    counts as failed for that attempt. An exhausted chain raises
    ``SideEffectFailure``.
    """

    def __init__(self, strategies: Sequence[RebootStrategy]) -> None:
        self.strategies = tuple(strategies)
        self._requested: set[str] = set()
        self._lock = threading.Lock()

    def _request_once(self, strategy: RebootStrategy) -> None:
        with self._lock:
            if strategy.name in self._requested:
                return
            self._requested.add(strategy.name)
        logger.info(
            "Requesting reboot privilege",
            extra={"strategy": strategy.name},
        )
        try:
            strategy.request_privilege()
        except Exception as exc:
            logger.warning(
                "Privilege request failed",
                extra={"strategy": strategy.name, "error_message": str(exc)},
            )

    def reboot(self) -> str:
        for attempt, strategy in enumerate(self.strategies, start=1):
            try:
                ok = strategy.reboot()
            except PermissionMissing as exc:
                logger.warning(
                    "Reboot strategy missing privilege",
                    extra={
                        "strategy": strategy.name,
                        "attempt_count": attempt,
                        "error_message": str(exc),
                    },
                )
                self._request_once(strategy)
                continue
            except Exception as exc:
                logger.warning(
                    "Reboot strategy failed",
                    extra={
                        "strategy": strategy.name,
                        "attempt_count": attempt,
                        "error_message": str(exc),
                    },
                )
                continue
            if ok:
                logger.info(
                    "Reboot issued",
                    extra={"strategy": strategy.name, "attempt_count": attempt},
                )
                return strategy.name
            logger.warning(
                "Reboot strategy reported failure",
                extra={"strategy": strategy.name, "attempt_count": attempt},
            )
        raise SideEffectFailure(
            f"All reboot strategies failed ({len(self.strategies)} tried)"
        )
