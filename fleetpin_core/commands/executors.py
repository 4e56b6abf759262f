from __future__ import annotations

from fleetpin_core.commands.types import PendingCommand
from fleetpin_core.errors import SideEffectFailure
from fleetpin_core.platform.interfaces import AppController
from fleetpin_core.platform.reboot import RebootChain
from fleetpin_core.prefs import LocalPreferences


class RestartAppExecutor:
    def __init__(self, prefs: LocalPreferences, apps: AppController) -> None:
        self.prefs = prefs
        self.apps = apps

    def execute(self, command: PendingCommand) -> None:
        target = self.prefs.target_app()
        if not target:
            raise SideEffectFailure("No target app configured; nothing to restart")
        if not self.apps.restart_app(target):
            raise SideEffectFailure(f"Restart of {target} failed")


class RebootExecutor:
    def __init__(self, chain: RebootChain) -> None:
        self.chain = chain

    def execute(self, command: PendingCommand) -> None:
        self.chain.reboot()
