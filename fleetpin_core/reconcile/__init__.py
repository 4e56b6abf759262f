from fleetpin_core.reconcile.policy import (
    lifecycle_actions,
    steady_state_action,
    transition_actions,
)
from fleetpin_core.reconcile.types import (
    DEVICE_FLAGS,
    FLAG_ACTIVE,
    FLAG_KIOSK,
    DesiredState,
    LifecycleDecision,
    LifecycleEvent,
    ReconcilerSnapshot,
    ReconcileTick,
    SteadyStateAction,
    TransitionAction,
)

__all__ = [
    "DEVICE_FLAGS",
    "DesiredState",
    "FLAG_ACTIVE",
    "FLAG_KIOSK",
    "LifecycleDecision",
    "LifecycleEvent",
    "ReconcileTick",
    "ReconcilerSnapshot",
    "SteadyStateAction",
    "TransitionAction",
    "lifecycle_actions",
    "steady_state_action",
    "transition_actions",
]
