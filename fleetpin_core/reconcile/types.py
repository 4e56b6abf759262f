from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

FLAG_ACTIVE = "active"
FLAG_KIOSK = "kiosk"
DEVICE_FLAGS: tuple[str, ...] = (FLAG_ACTIVE, FLAG_KIOSK)


@dataclass(frozen=True)
class DesiredState:
    device_id: str
    active: bool
    kiosk: bool


@dataclass(frozen=True)
class ReconcilerSnapshot:
    active: bool
    kiosk: bool


class TransitionAction(str, Enum):
    START_BLOCKING = "start_blocking"
    STOP_BLOCKING = "stop_blocking"
    SHOW_SURFACE = "show_surface"
    HIDE_SURFACE = "hide_surface"
    RECREATE_SURFACE = "recreate_surface"
    ENABLE_PINNING = "enable_pinning"
    DISABLE_PINNING = "disable_pinning"
    LAUNCH_TARGET = "launch_target"


class LifecycleEvent(str, Enum):
    RESUME = "resume"
    PAUSE = "pause"
    DESTROY = "destroy"
    BACK = "back"
    HOME = "home"
    USER_LEAVE = "user_leave"


@dataclass(frozen=True)
class LifecycleDecision:
    event: LifecycleEvent
    consumed: bool
    actions: tuple[TransitionAction, ...]


class SteadyStateAction(str, Enum):
    NONE = "none"
    ENSURE_FOREGROUND = "ensure_foreground"
    EVICT_UNAUTHORIZED = "evict_unauthorized"


@dataclass(frozen=True)
class ReconcileTick:
    snapshot: ReconcilerSnapshot | None
    transitions: tuple[TransitionAction, ...]
    steady_state: SteadyStateAction
    error: str | None = None
