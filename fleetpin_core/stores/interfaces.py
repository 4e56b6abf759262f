from __future__ import annotations

from typing import Protocol

from fleetpin_core.commands.types import CommandKind, PendingCommand
from fleetpin_core.reconcile.types import DesiredState


class RemoteStateClient(Protocol):
    """Typed accessor for the remote device/command store.

    Backend failures raise ``TransientRemoteError``. A missing record is not
    an error: reads return ``None`` and writes return ``False``.
    """

    def fetch_pending_command(
        self,
        device_id: str,
        kind: CommandKind,
    ) -> PendingCommand | None:
        ...

    def mark_executed(self, command_id: str) -> bool:
        ...

    def delete_command(self, command_id: str) -> bool:
        ...

    def fetch_flag(self, device_id: str, flag_name: str) -> bool | None:
        ...

    def upsert_heartbeat(self, device_id: str, unit_name: str | None = None) -> None:
        ...


class OperatorStateClient(RemoteStateClient, Protocol):
    def enqueue_command(self, device_id: str, kind: CommandKind) -> PendingCommand:
        ...

    def set_desired_state(
        self,
        device_id: str,
        *,
        active: bool | None = None,
        kiosk: bool | None = None,
    ) -> DesiredState:
        ...
