"""Pure reconciliation policy: which actions follow from which flags."""

from __future__ import annotations

from fleetpin_core.reconcile.types import (
    LifecycleDecision,
    LifecycleEvent,
    ReconcilerSnapshot,
    SteadyStateAction,
    TransitionAction,
)


def transition_actions(
    previous: ReconcilerSnapshot | None,
    current: ReconcilerSnapshot,
) -> tuple[TransitionAction, ...]:
    """Actions for the flags that changed since ``previous``.

    ``None`` means nothing has been applied yet, so every flag counts as
    changed and the full set of actions for ``current`` is returned.
    """
    actions: list[TransitionAction] = []
    if previous is None or previous.active != current.active:
        if current.active:
            actions.extend(
                (TransitionAction.START_BLOCKING, TransitionAction.SHOW_SURFACE)
            )
        else:
            actions.extend(
                (TransitionAction.STOP_BLOCKING, TransitionAction.HIDE_SURFACE)
            )
    if previous is None or previous.kiosk != current.kiosk:
        if current.kiosk:
            actions.extend(
                (TransitionAction.ENABLE_PINNING, TransitionAction.LAUNCH_TARGET)
            )
        else:
            actions.append(TransitionAction.DISABLE_PINNING)
    return tuple(actions)


def steady_state_action(current: ReconcilerSnapshot) -> SteadyStateAction:
    if current.kiosk:
        return SteadyStateAction.ENSURE_FOREGROUND
    if current.active:
        return SteadyStateAction.EVICT_UNAUTHORIZED
    return SteadyStateAction.NONE


def _keep_in_place(kiosk: bool) -> tuple[TransitionAction, ...]:
    # Kiosk re-opens the designated app; active-only just re-shows the grid.
    if kiosk:
        return (TransitionAction.LAUNCH_TARGET,)
    return (TransitionAction.SHOW_SURFACE,)


def lifecycle_actions(
    event: LifecycleEvent,
    active: bool,
    kiosk: bool,
) -> LifecycleDecision:
    """Decide how the host surface reacts to a lifecycle callback.

    ``consumed`` tells the host glue to suppress the platform's default
    behaviour (leaving, going back, being destroyed).
    """
    restricted = active or kiosk
    if event is LifecycleEvent.RESUME:
        actions: list[TransitionAction] = []
        if active:
            actions.append(TransitionAction.SHOW_SURFACE)
        if kiosk:
            actions.append(TransitionAction.LAUNCH_TARGET)
        return LifecycleDecision(event=event, consumed=False, actions=tuple(actions))
    if event is LifecycleEvent.DESTROY:
        if not restricted:
            return LifecycleDecision(event=event, consumed=False, actions=())
        return LifecycleDecision(
            event=event,
            consumed=True,
            actions=(TransitionAction.RECREATE_SURFACE,),
        )
    if not restricted:
        return LifecycleDecision(event=event, consumed=False, actions=())
    return LifecycleDecision(event=event, consumed=True, actions=_keep_in_place(kiosk))
