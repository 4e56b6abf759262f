from __future__ import annotations

import time
from typing import Callable

from fleetpin_core.logging import get_logger
from fleetpin_core.platform.interfaces import (
    AppController,
    ApprovedAppsSurface,
    ForegroundProbe,
)

logger = get_logger(__name__)


class ForegroundGuard:
    """Keeps the designated app (or the controller itself) in the foreground.

    Only called from reconciler ticks, which are serialized.
    """

    def __init__(
        self,
        probe: ForegroundProbe,
        apps: AppController,
        surface: ApprovedAppsSurface,
        controller_app_id: str,
        *,
        settle_s: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.probe = probe
        self.apps = apps
        self.surface = surface
        self.controller_app_id = controller_app_id
        self.settle_s = settle_s
        self._sleep = sleep

    def current_foreground_app(self) -> str | None:
        return self.probe.current_foreground_app()

    def _intruder(self, target: str) -> str | None:
        current = self.current_foreground_app()
        if current is None or current in (target, self.controller_app_id):
            return None
        return current

    def ensure_foreground(self, target: str | None) -> bool:
        """Launch ``target`` if another app holds the foreground."""
        if not target:
            return False
        intruder = self._intruder(target)
        if intruder is None:
            return False
        logger.warning(
            "Unauthorized app in foreground, relaunching target",
            extra={"app_id": intruder},
        )
        self._sleep(self.settle_s)
        return self.apps.launch_app(target)

    def evict_unauthorized(self, target: str | None) -> bool:
        """Close an unauthorized foreground app and show the approved-apps surface.

        The target is never launched here.
        """
        if not target:
            return False
        intruder = self._intruder(target)
        if intruder is None:
            return False
        logger.warning("Unauthorized app detected", extra={"app_id": intruder})
        try:
            self.apps.kill_app(intruder)
        except Exception as exc:
            logger.warning(
                "Could not close unauthorized app",
                extra={"app_id": intruder, "error_message": str(exc)},
            )
        self._sleep(self.settle_s)
        self.surface.show_surface()
        return True
