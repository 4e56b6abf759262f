from __future__ import annotations

import threading

from fleetpin_core.errors import PermissionMissing
from fleetpin_core.platform.interfaces import HostCapabilities


class MemoryHost:
    """Recording host for dry runs and tests.

    Every primitive appends ``(name, arg)`` to ``calls`` and updates a small
    model of the device (foreground app, pinning, blocking, surface).
    """

    def __init__(
        self,
        *,
        foreground: str | None = None,
        installed: set[str] | None = None,
        hardware_id: str | None = None,
    ) -> None:
        self.foreground = foreground
        self.installed = installed
        self._hardware_id = hardware_id
        self.pinned: str | None = None
        self.blocking = False
        self.surface_visible = False
        self.calls: list[tuple[str, str | None]] = []
        self._lock = threading.Lock()

    def _record(self, name: str, arg: str | None = None) -> None:
        with self._lock:
            self.calls.append((name, arg))

    def calls_named(self, name: str) -> list[str | None]:
        with self._lock:
            return [arg for call, arg in self.calls if call == name]

    def current_foreground_app(self) -> str | None:
        return self.foreground

    def launch_app(self, app_id: str) -> bool:
        self._record("launch_app", app_id)
        if self.installed is not None and app_id not in self.installed:
            return False
        self.foreground = app_id
        return True

    def kill_app(self, app_id: str) -> bool:
        self._record("kill_app", app_id)
        if self.foreground == app_id:
            self.foreground = None
        return True

    def restart_app(self, app_id: str) -> bool:
        self._record("restart_app", app_id)
        self.kill_app(app_id)
        return self.launch_app(app_id)

    def enable_pinning(self, app_id: str | None) -> None:
        self._record("enable_pinning", app_id)
        self.pinned = app_id

    def disable_pinning(self) -> None:
        self._record("disable_pinning")
        self.pinned = None

    def start_blocking(self) -> None:
        self._record("start_blocking")
        self.blocking = True

    def stop_blocking(self) -> None:
        self._record("stop_blocking")
        self.blocking = False

    def show_surface(self) -> None:
        self._record("show_surface")
        self.surface_visible = True

    def hide_surface(self) -> None:
        self._record("hide_surface")
        self.surface_visible = False

    def recreate_surface(self) -> None:
        self._record("recreate_surface")
        self.surface_visible = True

    def hardware_id(self) -> str | None:
        return self._hardware_id


class MemoryRebootStrategy:
    def __init__(
        self,
        name: str,
        *,
        succeeds: bool = True,
        permitted: bool = True,
    ) -> None:
        self.name = name
        self.succeeds = succeeds
        self.permitted = permitted
        self.attempts = 0
        self.privilege_requests = 0

    def reboot(self) -> bool:
        self.attempts += 1
        if not self.permitted:
            raise PermissionMissing(f"{self.name} privilege not granted")
        return self.succeeds

    def request_privilege(self) -> None:
        self.privilege_requests += 1


def build_memory_host(
    host: MemoryHost | None = None,
    strategies: tuple[MemoryRebootStrategy, ...] | None = None,
) -> HostCapabilities:
    host = host or MemoryHost()
    if strategies is None:
        strategies = (
            MemoryRebootStrategy("device_admin"),
            MemoryRebootStrategy("superuser"),
            MemoryRebootStrategy("raw"),
        )
    return HostCapabilities(
        foreground=host,
        apps=host,
        pinning=host,
        blocker=host,
        surface=host,
        identity=host,
        reboot_strategies=strategies,
    )
