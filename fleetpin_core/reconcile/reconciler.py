from __future__ import annotations

import threading

from fleetpin_core.config import LoopTiming
from fleetpin_core.foreground import ForegroundGuard
from fleetpin_core.logging import get_logger
from fleetpin_core.platform.interfaces import HostCapabilities
from fleetpin_core.prefs import LocalPreferences
from fleetpin_core.reconcile.policy import (
    lifecycle_actions,
    steady_state_action,
    transition_actions,
)
from fleetpin_core.reconcile.types import (
    FLAG_ACTIVE,
    FLAG_KIOSK,
    LifecycleDecision,
    LifecycleEvent,
    ReconcilerSnapshot,
    ReconcileTick,
    SteadyStateAction,
    TransitionAction,
)
from fleetpin_core.stores.interfaces import RemoteStateClient

logger = get_logger(__name__)


class StateReconciler:
    """Drives local behaviour toward the device's remote ``active``/``kiosk`` flags.

    Transition actions run only when the flags differ from the last applied
    snapshot. Steady-state enforcement runs on every tick.
    """

    name = "reconciler"

    def __init__(
        self,
        device_id: str,
        client: RemoteStateClient,
        host: HostCapabilities,
        guard: ForegroundGuard,
        prefs: LocalPreferences,
        *,
        timing: LoopTiming,
    ) -> None:
        self.device_id = device_id
        self.client = client
        self.host = host
        self.guard = guard
        self.prefs = prefs
        self.timing = timing
        self._snapshot: ReconcilerSnapshot | None = None
        self._tick_lock = threading.Lock()
        self.last_tick: ReconcileTick | None = None

    @property
    def snapshot(self) -> ReconcilerSnapshot | None:
        return self._snapshot

    def reset(self) -> None:
        """Forget the applied snapshot so the next tick does a full pass."""
        self._snapshot = None

    def _read_flags(self) -> ReconcilerSnapshot:
        active = self.client.fetch_flag(self.device_id, FLAG_ACTIVE)
        kiosk = self.client.fetch_flag(self.device_id, FLAG_KIOSK)
        # No device record yet reads as both flags off.
        return ReconcilerSnapshot(active=bool(active), kiosk=bool(kiosk))

    def tick(self) -> ReconcileTick:
        with self._tick_lock:
            result = self._tick()
        self.last_tick = result
        return result

    def _tick(self) -> ReconcileTick:
        error: str | None = None
        try:
            current = self._read_flags()
        except Exception as exc:
            logger.warning(
                "Reading desired state failed",
                extra={"loop": self.name, "error_message": str(exc)},
            )
            if self._snapshot is None:
                return ReconcileTick(
                    snapshot=None,
                    transitions=(),
                    steady_state=SteadyStateAction.NONE,
                    error=str(exc),
                )
            current = self._snapshot
            error = str(exc)

        transitions: tuple[TransitionAction, ...] = ()
        if error is None and current != self._snapshot:
            transitions = transition_actions(self._snapshot, current)
            logger.info(
                "Desired state changed",
                extra={
                    "loop": self.name,
                    "active": current.active,
                    "kiosk": current.kiosk,
                    "status": ",".join(action.value for action in transitions),
                },
            )
            self.apply_actions(transitions)
            self._snapshot = current

        steady = steady_state_action(current)
        try:
            self._enforce(steady)
        except Exception as exc:
            logger.warning(
                "Steady-state enforcement failed",
                extra={
                    "loop": self.name,
                    "state": steady.value,
                    "error_message": str(exc),
                },
            )
            error = error or str(exc)
        return ReconcileTick(
            snapshot=current,
            transitions=transitions,
            steady_state=steady,
            error=error,
        )

    def _enforce(self, steady: SteadyStateAction) -> None:
        if steady is SteadyStateAction.ENSURE_FOREGROUND:
            self.guard.ensure_foreground(self.prefs.target_app())
        elif steady is SteadyStateAction.EVICT_UNAUTHORIZED:
            self.guard.evict_unauthorized(self.prefs.target_app())

    def apply_actions(self, actions: tuple[TransitionAction, ...]) -> None:
        for action in actions:
            try:
                self._apply(action)
            except Exception as exc:
                logger.warning(
                    "Action failed",
                    extra={
                        "loop": self.name,
                        "status": action.value,
                        "error_message": str(exc),
                    },
                )

    def _apply(self, action: TransitionAction) -> None:
        host = self.host
        if action is TransitionAction.START_BLOCKING:
            host.blocker.start_blocking()
        elif action is TransitionAction.STOP_BLOCKING:
            host.blocker.stop_blocking()
        elif action is TransitionAction.SHOW_SURFACE:
            host.surface.show_surface()
        elif action is TransitionAction.HIDE_SURFACE:
            host.surface.hide_surface()
        elif action is TransitionAction.RECREATE_SURFACE:
            host.surface.recreate_surface()
        elif action is TransitionAction.ENABLE_PINNING:
            host.pinning.enable_pinning(self.prefs.target_app())
        elif action is TransitionAction.DISABLE_PINNING:
            host.pinning.disable_pinning()
        elif action is TransitionAction.LAUNCH_TARGET:
            target = self.prefs.target_app()
            if not target:
                logger.warning("No target app configured", extra={"loop": self.name})
                return
            host.apps.launch_app(target)

    def handle_lifecycle(self, event: LifecycleEvent) -> LifecycleDecision:
        # Serialized with tick() so lifecycle actions never interleave with a pass.
        with self._tick_lock:
            snapshot = self._snapshot
            active = snapshot.active if snapshot else False
            kiosk = snapshot.kiosk if snapshot else False
            decision = lifecycle_actions(event, active, kiosk)
            logger.info(
                "Lifecycle event",
                extra={
                    "loop": self.name,
                    "state": event.value,
                    "active": active,
                    "kiosk": kiosk,
                    "status": "consumed" if decision.consumed else "passed",
                },
            )
            self.apply_actions(decision.actions)
        return decision

    def run(self, stop_event: threading.Event) -> None:
        logger.info("State reconciler started", extra={"loop": self.name})
        while not stop_event.is_set():
            delay = self.timing.poll_s
            try:
                if self.tick().error is not None:
                    delay = self.timing.error_retry_s
            except Exception as exc:
                logger.warning(
                    "Reconcile tick failed",
                    extra={"loop": self.name, "error_message": str(exc)},
                )
                delay = self.timing.error_retry_s
            stop_event.wait(delay)

    def status(self) -> dict[str, object]:
        snapshot = self._snapshot
        return {
            "snapshot": (
                {"active": snapshot.active, "kiosk": snapshot.kiosk}
                if snapshot
                else None
            ),
            "last_error": self.last_tick.error if self.last_tick else None,
        }
