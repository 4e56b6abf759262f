from fleetpin_core.commands.ledger import CommandLedger
from fleetpin_core.commands.types import (
    CommandKind,
    PendingCommand,
    PollerState,
    TickOutcome,
    command_from_dict,
)

__all__ = [
    "CommandKind",
    "CommandLedger",
    "PendingCommand",
    "PollerState",
    "TickOutcome",
    "command_from_dict",
]
