import pytest

from fleetpin_core.foreground import ForegroundGuard
from fleetpin_core.platform.memory import MemoryHost

TARGET_APP = "com.example.menu"
CONTROLLER_APP = "com.fleetpin.controller"


def _guard(host: MemoryHost, sleeps: list[float] | None = None) -> ForegroundGuard:
    def _sleep(seconds: float) -> None:
        if sleeps is not None:
            sleeps.append(seconds)

    return ForegroundGuard(
        host, host, host, CONTROLLER_APP, settle_s=0.5, sleep=_sleep
    )


@pytest.mark.core
def test_ensure_foreground_relaunches_target() -> None:
    host = MemoryHost(foreground="com.example.game")
    sleeps: list[float] = []

    assert _guard(host, sleeps).ensure_foreground(TARGET_APP) is True

    assert host.foreground == TARGET_APP
    assert host.calls_named("launch_app") == [TARGET_APP]
    assert sleeps == [0.5]


@pytest.mark.core
@pytest.mark.parametrize("current", [TARGET_APP, CONTROLLER_APP, None])
def test_authorized_or_unknown_foreground_is_left_alone(current) -> None:
    host = MemoryHost(foreground=current)
    guard = _guard(host)

    assert guard.ensure_foreground(TARGET_APP) is False
    assert guard.evict_unauthorized(TARGET_APP) is False
    assert host.calls == []


@pytest.mark.core
def test_no_target_means_nothing_to_enforce() -> None:
    host = MemoryHost(foreground="com.example.game")
    guard = _guard(host)

    assert guard.ensure_foreground(None) is False
    assert guard.evict_unauthorized("") is False
    assert host.calls == []


@pytest.mark.core
def test_evict_kills_intruder_and_shows_surface() -> None:
    host = MemoryHost(foreground="com.example.game")

    assert _guard(host).evict_unauthorized(TARGET_APP) is True

    assert host.calls == [("kill_app", "com.example.game"), ("show_surface", None)]
    assert host.calls_named("launch_app") == []


@pytest.mark.core
def test_evict_still_shows_surface_when_kill_fails(monkeypatch: pytest.MonkeyPatch) -> None:
    host = MemoryHost(foreground="com.example.game")

    def _fail(app_id: str) -> bool:
        raise RuntimeError("force-stop denied")

    monkeypatch.setattr(host, "kill_app", _fail)

    assert _guard(host).evict_unauthorized(TARGET_APP) is True
    assert host.surface_visible is True
