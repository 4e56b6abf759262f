from __future__ import annotations

import re
import time
from typing import Callable

from fleetpin_core.errors import RecoverableError
from fleetpin_core.logging import get_logger
from fleetpin_core.platform.interfaces import HostCapabilities
from fleetpin_core.platform.reboot import (
    DeviceAdminReboot,
    RawReboot,
    SuperuserReboot,
    ShellRunner,
)
from fleetpin_core.platform.shell import AdbShell, ShellResult

logger = get_logger(__name__)

_RESUMED_RE = re.compile(
    r"(?:mResumedActivity|topResumedActivity|ResumedActivity)[:=].*?\s([A-Za-z0-9_.]+)/"
)
_LAUNCHER_CATEGORY = "android.intent.category.LAUNCHER"
_UNSET_VALUES = {"", "null"}
# FLAG_ACTIVITY_NEW_TASK | FLAG_ACTIVITY_CLEAR_TOP
_RECREATE_FLAGS = "0x14000000"


def parse_resumed_app(dumpsys: str) -> str | None:
    match = _RESUMED_RE.search(dumpsys)
    if match is None:
        return None
    return match.group(1)


def parse_task_id(dumpsys: str, app_id: str) -> int | None:
    pattern = re.compile(rf"{re.escape(app_id)}/\S*\s+t(\d+)")
    match = pattern.search(dumpsys)
    if match is None:
        return None
    return int(match.group(1))


class AdbPlatform:
    """Host capabilities of an Android device reached over ``adb shell``.

    Blocking and the approved-apps surface are owned by the controller app on
    the device; they are driven with broadcasts scoped to its package.
    """

    def __init__(
        self,
        shell: ShellRunner,
        controller_app_id: str,
        *,
        restart_pause_s: float = 2.0,
        workspace_activity: str = ".ui.WorkspaceActivity",
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.shell = shell
        self.controller_app_id = controller_app_id
        self.restart_pause_s = restart_pause_s
        self.workspace_activity = workspace_activity
        self._sleep = sleep

    def _broadcast(self, action: str, *extras: str) -> ShellResult:
        result = self.shell.run(
            "am",
            "broadcast",
            "-a",
            f"{self.controller_app_id}.action.{action}",
            *extras,
            "-p",
            self.controller_app_id,
        )
        if not result.ok:
            raise RecoverableError(
                f"Broadcast {action} failed: {result.stderr.strip() or result.returncode}"
            )
        return result

    def _activities(self) -> str:
        result = self.shell.run("dumpsys", "activity", "activities")
        if not result.ok:
            raise RecoverableError(
                f"dumpsys activity failed: {result.stderr.strip() or result.returncode}"
            )
        return result.stdout

    def current_foreground_app(self) -> str | None:
        return parse_resumed_app(self._activities())

    def launch_app(self, app_id: str) -> bool:
        result = self.shell.run(
            "monkey",
            "-p",
            app_id,
            "-c",
            _LAUNCHER_CATEGORY,
            "1",
        )
        if not result.ok or "No activities found" in result.stdout:
            logger.warning(
                "App launch failed",
                extra={"app_id": app_id, "error_message": result.stderr.strip()},
            )
            return False
        return True

    def kill_app(self, app_id: str) -> bool:
        return self.shell.run("am", "force-stop", app_id).ok

    def restart_app(self, app_id: str) -> bool:
        closed = self.kill_app(app_id)
        self._sleep(self.restart_pause_s if closed else self.restart_pause_s / 2)
        return self.launch_app(app_id)

    def enable_pinning(self, app_id: str | None) -> None:
        if not app_id:
            logger.warning("No app to pin")
            return
        task_id = parse_task_id(self._activities(), app_id)
        if task_id is None:
            logger.warning("No task found to pin", extra={"app_id": app_id})
            return
        result = self.shell.run("am", "task", "lock", str(task_id))
        if not result.ok:
            raise RecoverableError(f"Screen pinning failed for {app_id}")

    def disable_pinning(self) -> None:
        self.shell.run("am", "task", "lock", "stop")

    def start_blocking(self) -> None:
        self._broadcast("SET_BLOCKING", "--ez", "is_active", "true")

    def stop_blocking(self) -> None:
        self._broadcast("SET_BLOCKING", "--ez", "is_active", "false")

    def show_surface(self) -> None:
        self._broadcast("SHOW_GRID")

    def hide_surface(self) -> None:
        self._broadcast("HIDE_GRID")

    def recreate_surface(self) -> None:
        result = self.shell.run(
            "am",
            "start",
            "-n",
            f"{self.controller_app_id}/{self.workspace_activity}",
            "-f",
            _RECREATE_FLAGS,
        )
        if not result.ok:
            raise RecoverableError("Could not re-create the approved-apps surface")

    def hardware_id(self) -> str | None:
        result = self.shell.run("settings", "get", "secure", "android_id")
        value = result.stdout.strip()
        if not result.ok or value.lower() in _UNSET_VALUES:
            return None
        return value


def build_adb_host(
    adb_path: str,
    serial: str | None,
    controller_app_id: str,
    *,
    timeout_s: float = 15.0,
) -> HostCapabilities:
    shell = AdbShell(adb_path, serial, timeout_s=timeout_s)
    platform = AdbPlatform(shell, controller_app_id)
    return HostCapabilities(
        foreground=platform,
        apps=platform,
        pinning=platform,
        blocker=platform,
        surface=platform,
        identity=platform,
        reboot_strategies=(
            DeviceAdminReboot(shell, controller_app_id),
            SuperuserReboot(shell),
            RawReboot(shell),
        ),
    )
