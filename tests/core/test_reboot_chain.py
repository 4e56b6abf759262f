import pytest

from fleetpin_core.commands.executors import RebootExecutor, RestartAppExecutor
from fleetpin_core.commands.types import CommandKind, PendingCommand
from fleetpin_core.errors import SideEffectFailure
from fleetpin_core.platform.memory import MemoryHost, MemoryRebootStrategy
from fleetpin_core.platform.reboot import (
    DeviceAdminReboot,
    RawReboot,
    RebootChain,
    SuperuserReboot,
)
from fleetpin_core.platform.shell import ShellResult
from fleetpin_core.prefs import LocalPreferences


class FakeShell:
    def __init__(self, responses: dict[tuple[str, ...], ShellResult] | None = None) -> None:
        self.responses = responses or {}
        self.calls: list[tuple[str, ...]] = []

    def run(self, *args: str, timeout_s: float | None = None) -> ShellResult:
        self.calls.append(args)
        return self.responses.get(args, ShellResult(0, "", ""))


def _command(kind: CommandKind) -> PendingCommand:
    return PendingCommand(
        id="cmd-1",
        device_id="device-1",
        kind=kind,
        executed=True,
        created_at="2024-01-01T00:00:00+00:00",
    )


@pytest.mark.core
def test_first_successful_strategy_wins() -> None:
    admin = MemoryRebootStrategy("device_admin")
    su = MemoryRebootStrategy("superuser")

    assert RebootChain([admin, su]).reboot() == "device_admin"
    assert su.attempts == 0


@pytest.mark.core
def test_falls_through_and_requests_privilege_once() -> None:
    admin = MemoryRebootStrategy("device_admin", permitted=False)
    su = MemoryRebootStrategy("superuser", succeeds=False)
    raw = MemoryRebootStrategy("raw")
    chain = RebootChain([admin, su, raw])

    assert chain.reboot() == "raw"
    assert chain.reboot() == "raw"

    assert admin.attempts == 2
    assert admin.privilege_requests == 1
    assert raw.attempts == 2


@pytest.mark.core
def test_exhausted_chain_raises() -> None:
    strategies = [
        MemoryRebootStrategy("device_admin", permitted=False),
        MemoryRebootStrategy("superuser", succeeds=False),
        MemoryRebootStrategy("raw", succeeds=False),
    ]
    with pytest.raises(SideEffectFailure):
        RebootChain(strategies).reboot()


@pytest.mark.core
def test_device_admin_reboot_requires_active_admin() -> None:
    shell = FakeShell(
        {("dumpsys", "device_policy"): ShellResult(0, "Device Admin: none\n", "")}
    )
    strategy = DeviceAdminReboot(shell, "com.fleetpin.controller")
    chain = RebootChain([strategy, SuperuserReboot(shell), RawReboot(shell)])

    assert chain.reboot() == "superuser"
    assert (
        "dpm",
        "set-active-admin",
        "com.fleetpin.controller/.receiver.DeviceAdminReceiver",
    ) in shell.calls
    assert ("su", "-c", "reboot") in shell.calls


@pytest.mark.core
def test_device_admin_reboot_broadcasts_to_controller() -> None:
    shell = FakeShell(
        {
            ("dumpsys", "device_policy"): ShellResult(
                0, "Admin (com.fleetpin.controller/.receiver.DeviceAdminReceiver)", ""
            )
        }
    )

    assert DeviceAdminReboot(shell, "com.fleetpin.controller").reboot() is True
    assert shell.calls[-1] == (
        "am",
        "broadcast",
        "-a",
        "com.fleetpin.controller.action.REBOOT",
        "-p",
        "com.fleetpin.controller",
    )


@pytest.mark.core
def test_reboot_executor_surfaces_exhaustion() -> None:
    executor = RebootExecutor(RebootChain([MemoryRebootStrategy("raw", succeeds=False)]))
    with pytest.raises(SideEffectFailure):
        executor.execute(_command(CommandKind.REBOOT))


@pytest.mark.core
def test_restart_executor_restarts_target(prefs) -> None:
    host = MemoryHost(foreground="com.example.menu")

    RestartAppExecutor(prefs, host).execute(_command(CommandKind.RESTART_APP))

    assert host.calls_named("restart_app") == ["com.example.menu"]
    assert host.foreground == "com.example.menu"


@pytest.mark.core
def test_restart_executor_without_target(tmp_path) -> None:
    host = MemoryHost()
    executor = RestartAppExecutor(LocalPreferences(tmp_path / "empty.json"), host)

    with pytest.raises(SideEffectFailure):
        executor.execute(_command(CommandKind.RESTART_APP))
    assert host.calls == []


@pytest.mark.core
def test_restart_executor_reports_failed_launch(prefs) -> None:
    host = MemoryHost(installed={"com.example.other"})
    with pytest.raises(SideEffectFailure):
        RestartAppExecutor(prefs, host).execute(_command(CommandKind.RESTART_APP))
