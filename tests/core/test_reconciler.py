import threading

import pytest

from fleetpin_core.errors import TransientRemoteError
from fleetpin_core.foreground import ForegroundGuard
from fleetpin_core.reconcile.reconciler import StateReconciler
from fleetpin_core.reconcile.types import (
    LifecycleEvent,
    ReconcilerSnapshot,
    SteadyStateAction,
    TransitionAction,
)

DEVICE_ID = "device-1"
TARGET_APP = "com.example.menu"
CONTROLLER_APP = "com.fleetpin.controller"


@pytest.fixture
def reconciler(remote, host, prefs, fast_timing, no_sleep):
    guard = ForegroundGuard(
        host.foreground,
        host.apps,
        host.surface,
        CONTROLLER_APP,
        settle_s=0,
        sleep=no_sleep,
    )
    return StateReconciler(DEVICE_ID, remote, host, guard, prefs, timing=fast_timing)


@pytest.mark.core
def test_first_tick_applies_full_pass(reconciler, remote, memory_host):
    remote.set_desired_state(DEVICE_ID, active=True, kiosk=True)

    result = reconciler.tick()

    assert result.error is None
    assert result.snapshot == ReconcilerSnapshot(active=True, kiosk=True)
    assert TransitionAction.ENABLE_PINNING in result.transitions
    assert memory_host.blocking is True
    assert memory_host.surface_visible is True
    assert memory_host.pinned == TARGET_APP
    assert memory_host.foreground == TARGET_APP


@pytest.mark.core
def test_unchanged_state_is_a_no_op(reconciler, remote, memory_host):
    remote.set_desired_state(DEVICE_ID, active=True)
    reconciler.tick()
    calls_before = list(memory_host.calls)

    result = reconciler.tick()

    assert result.transitions == ()
    assert result.steady_state is SteadyStateAction.EVICT_UNAUTHORIZED
    assert memory_host.calls == calls_before


@pytest.mark.core
def test_missing_device_reads_as_flags_off(reconciler, memory_host):
    result = reconciler.tick()

    assert result.snapshot == ReconcilerSnapshot(active=False, kiosk=False)
    assert memory_host.calls_named("stop_blocking") == [None]
    assert memory_host.calls_named("disable_pinning") == [None]
    assert result.steady_state is SteadyStateAction.NONE


@pytest.mark.core
def test_kiosk_relaunches_target_when_intruder_in_front(reconciler, remote, memory_host):
    remote.set_desired_state(DEVICE_ID, active=True, kiosk=True)
    reconciler.tick()
    memory_host.foreground = "com.example.game"

    result = reconciler.tick()

    assert result.steady_state is SteadyStateAction.ENSURE_FOREGROUND
    assert memory_host.foreground == TARGET_APP
    # Kiosk wins over active: the intruder is not killed, the target comes back.
    assert memory_host.calls_named("kill_app") == []


@pytest.mark.core
def test_steady_kiosk_tick_only_reaffirms_foreground(reconciler, remote, memory_host):
    remote.set_desired_state(DEVICE_ID, active=True, kiosk=True)
    reconciler.tick()
    calls_before = list(memory_host.calls)

    result = reconciler.tick()

    assert result.transitions == ()
    assert result.steady_state is SteadyStateAction.ENSURE_FOREGROUND
    assert memory_host.foreground == TARGET_APP
    assert memory_host.pinned == TARGET_APP
    assert memory_host.calls == calls_before


@pytest.mark.core
def test_dropping_kiosk_falls_back_to_active_eviction(reconciler, remote, memory_host):
    remote.set_desired_state(DEVICE_ID, active=True, kiosk=True)
    reconciler.tick()
    launches = len(memory_host.calls_named("launch_app"))
    remote.set_desired_state(DEVICE_ID, active=True, kiosk=False)
    memory_host.foreground = "com.example.game"

    result = reconciler.tick()

    assert result.transitions == (TransitionAction.DISABLE_PINNING,)
    assert result.steady_state is SteadyStateAction.EVICT_UNAUTHORIZED
    assert memory_host.pinned is None
    assert memory_host.blocking is True
    assert memory_host.calls_named("kill_app") == ["com.example.game"]
    assert len(memory_host.calls_named("launch_app")) == launches


@pytest.mark.core
def test_active_only_evicts_intruder_without_launching(reconciler, remote, memory_host):
    remote.set_desired_state(DEVICE_ID, active=True, kiosk=False)
    reconciler.tick()
    launches = len(memory_host.calls_named("launch_app"))
    memory_host.foreground = "com.example.game"

    reconciler.tick()

    assert memory_host.calls_named("kill_app") == ["com.example.game"]
    assert memory_host.surface_visible is True
    assert len(memory_host.calls_named("launch_app")) == launches


@pytest.mark.core
def test_controller_in_front_is_not_an_intruder(reconciler, remote, memory_host):
    remote.set_desired_state(DEVICE_ID, active=True)
    reconciler.tick()
    memory_host.foreground = CONTROLLER_APP

    reconciler.tick()

    assert memory_host.calls_named("kill_app") == []


@pytest.mark.core
def test_read_failure_keeps_snapshot(reconciler, remote, monkeypatch):
    remote.set_desired_state(DEVICE_ID, active=True)
    reconciler.tick()

    def _fail(device_id, flag_name):
        raise TransientRemoteError("offline")

    monkeypatch.setattr(remote, "fetch_flag", _fail)
    result = reconciler.tick()

    assert result.error == "offline"
    assert result.transitions == ()
    assert reconciler.snapshot == ReconcilerSnapshot(active=True, kiosk=False)
    assert reconciler.status()["last_error"] == "offline"


@pytest.mark.core
def test_read_failure_before_first_snapshot(reconciler, remote, memory_host, monkeypatch):
    def _fail(device_id, flag_name):
        raise TransientRemoteError("offline")

    monkeypatch.setattr(remote, "fetch_flag", _fail)
    result = reconciler.tick()

    assert result.snapshot is None
    assert result.error == "offline"
    assert memory_host.calls == []


@pytest.mark.core
def test_reset_forces_full_pass(reconciler, remote, memory_host):
    remote.set_desired_state(DEVICE_ID, active=True)
    reconciler.tick()
    reconciler.reset()
    assert reconciler.snapshot is None

    result = reconciler.tick()

    assert result.transitions == (
        TransitionAction.START_BLOCKING,
        TransitionAction.SHOW_SURFACE,
        TransitionAction.DISABLE_PINNING,
    )
    assert memory_host.calls_named("start_blocking") == [None, None]


@pytest.mark.core
def test_failed_action_does_not_stop_the_rest(reconciler, remote, memory_host, monkeypatch):
    def _boom():
        raise RuntimeError("blocker unavailable")

    monkeypatch.setattr(memory_host, "start_blocking", _boom)
    remote.set_desired_state(DEVICE_ID, active=True)

    result = reconciler.tick()

    assert result.error is None
    assert memory_host.surface_visible is True
    assert reconciler.snapshot == ReconcilerSnapshot(active=True, kiosk=False)


@pytest.mark.core
def test_lifecycle_uses_applied_snapshot(reconciler, remote, memory_host):
    decision = reconciler.handle_lifecycle(LifecycleEvent.BACK)
    assert decision.consumed is False

    remote.set_desired_state(DEVICE_ID, active=True, kiosk=True)
    reconciler.tick()
    memory_host.foreground = None

    decision = reconciler.handle_lifecycle(LifecycleEvent.HOME)

    assert decision.consumed is True
    assert decision.actions == (TransitionAction.LAUNCH_TARGET,)
    assert memory_host.foreground == TARGET_APP

    decision = reconciler.handle_lifecycle(LifecycleEvent.DESTROY)
    assert decision.consumed is True
    assert memory_host.calls_named("recreate_surface") == [None]


@pytest.mark.core
def test_lifecycle_waits_for_running_tick(reconciler, remote, memory_host):
    remote.set_desired_state(DEVICE_ID, active=True, kiosk=True)
    reconciler.tick()
    memory_host.foreground = None
    decisions = []

    with reconciler._tick_lock:
        worker = threading.Thread(
            target=lambda: decisions.append(reconciler.handle_lifecycle(LifecycleEvent.HOME))
        )
        worker.start()
        worker.join(0.1)
        assert worker.is_alive()
        assert memory_host.foreground is None

    worker.join(5)
    assert not worker.is_alive()
    assert decisions[0].actions == (TransitionAction.LAUNCH_TARGET,)
    assert memory_host.foreground == TARGET_APP
