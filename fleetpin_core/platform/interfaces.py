from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class ForegroundProbe(Protocol):
    def current_foreground_app(self) -> str | None:
        ...


class AppController(Protocol):
    def launch_app(self, app_id: str) -> bool:
        ...

    def kill_app(self, app_id: str) -> bool:
        ...

    def restart_app(self, app_id: str) -> bool:
        ...


class ScreenPinning(Protocol):
    def enable_pinning(self, app_id: str | None) -> None:
        ...

    def disable_pinning(self) -> None:
        ...


class AppBlocker(Protocol):
    def start_blocking(self) -> None:
        ...

    def stop_blocking(self) -> None:
        ...


class ApprovedAppsSurface(Protocol):
    def show_surface(self) -> None:
        ...

    def hide_surface(self) -> None:
        ...

    def recreate_surface(self) -> None:
        ...


class HardwareIdentity(Protocol):
    def hardware_id(self) -> str | None:
        ...


class RebootStrategy(Protocol):
    """One way of rebooting the host.

    ``reboot`` returns ``False`` when the primitive ran but did not take, and
    raises ``PermissionMissing`` when the privilege it needs is not granted.
    """

    name: str

    def reboot(self) -> bool:
        ...

    def request_privilege(self) -> None:
        ...


@dataclass(frozen=True)
class HostCapabilities:
    foreground: ForegroundProbe
    apps: AppController
    pinning: ScreenPinning
    blocker: AppBlocker
    surface: ApprovedAppsSurface
    identity: HardwareIdentity
    reboot_strategies: tuple[RebootStrategy, ...]
