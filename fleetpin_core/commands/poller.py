from __future__ import annotations

import threading
import time
from typing import Callable, Protocol

from fleetpin_core.commands.ledger import CommandLedger
from fleetpin_core.commands.types import (
    CommandKind,
    PendingCommand,
    PollerState,
    TickOutcome,
)
from fleetpin_core.config import LoopTiming
from fleetpin_core.logging import get_logger
from fleetpin_core.stores.interfaces import RemoteStateClient

logger = get_logger(__name__)

DEFAULT_STUCK_AFTER_S = 120.0


class CommandExecutor(Protocol):
    def execute(self, command: PendingCommand) -> None:
        ...


class CommandPoller:
    """Polls one command kind and runs each delivered command at most once.

    The remote ``executed`` flag is written before the side effect fires, so a
    crash mid-execution leaves the command consumed rather than replayable.
    The ledger covers the read-after-write window of the remote store.
    """

    def __init__(
        self,
        kind: CommandKind,
        device_id: str,
        client: RemoteStateClient,
        executor: CommandExecutor,
        *,
        timing: LoopTiming,
        settle_s: float,
        repair_pause_s: float,
        cooldown_s: float,
        ledger: CommandLedger | None = None,
        stuck_after_s: float = DEFAULT_STUCK_AFTER_S,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.kind = kind
        self.device_id = device_id
        self.client = client
        self.executor = executor
        self.timing = timing
        self.settle_s = settle_s
        self.repair_pause_s = repair_pause_s
        self.cooldown_s = cooldown_s
        self.ledger = ledger if ledger is not None else CommandLedger()
        self.stuck_after_s = stuck_after_s
        self._sleep = sleep
        self._clock = clock
        self._lock = threading.Lock()
        self._state = PollerState.IDLE
        self._state_since = clock()
        self.last_outcome: TickOutcome | None = None

    @property
    def name(self) -> str:
        return f"{self.kind.value}-poller"

    @property
    def state(self) -> PollerState:
        with self._lock:
            return self._state

    def _is_wedged(self) -> bool:
        return (
            self._state is PollerState.EXECUTING
            and self._clock() - self._state_since > self.stuck_after_s
        )

    def _set_state(self, state: PollerState) -> None:
        self._state = state
        self._state_since = self._clock()

    def _is_busy(self) -> bool:
        with self._lock:
            return self._state is PollerState.EXECUTING and not self._is_wedged()

    def _try_begin(self) -> bool:
        with self._lock:
            if self._state is PollerState.EXECUTING and not self._is_wedged():
                return False
            self._set_state(PollerState.EXECUTING)
            return True

    def _finish(self) -> None:
        with self._lock:
            self._set_state(PollerState.IDLE)

    def _clear_wedge(self) -> None:
        with self._lock:
            if not self._is_wedged():
                return
            self._set_state(PollerState.IDLE)
        logger.warning(
            "Poller state was stuck, resetting",
            extra={"loop": self.name, "state": PollerState.IDLE.value},
        )

    def reset(self) -> None:
        """Back to IDLE; the ledger is kept."""
        self._finish()

    def tick(self) -> TickOutcome:
        outcome = self._tick()
        self.last_outcome = outcome
        return outcome

    def _tick(self) -> TickOutcome:
        if self._is_busy():
            return TickOutcome.SKIPPED_BUSY

        command = self.client.fetch_pending_command(self.device_id, self.kind)
        if command is None:
            self._clear_wedge()
            return TickOutcome.NO_COMMAND

        if self.ledger.is_processed(command.id):
            logger.info(
                "Command already processed in this session",
                extra=self._extra(command),
            )
            return TickOutcome.ALREADY_PROCESSED

        if not self._try_begin():
            return TickOutcome.SKIPPED_BUSY

        try:
            # A tick that overlapped ours may have finished this id already.
            if self.ledger.is_processed(command.id):
                return TickOutcome.ALREADY_PROCESSED
            if not self._claim(command):
                return TickOutcome.MARK_FAILED
            self.ledger.mark_processed(command.id)
            self._recheck(command)
            outcome = self._execute(command)
            self._sleep(self.cooldown_s)
            return outcome
        finally:
            self._finish()

    def _claim(self, command: PendingCommand) -> bool:
        try:
            if self.client.mark_executed(command.id):
                logger.info("Command marked executed", extra=self._extra(command))
                return True
            logger.warning(
                "Command could not be marked executed",
                extra=self._extra(command),
            )
        except Exception as exc:
            logger.warning(
                "Marking command executed failed",
                extra={**self._extra(command), "error_message": str(exc)},
            )

        try:
            if self.client.delete_command(command.id):
                logger.info(
                    "Command deleted instead of marked",
                    extra=self._extra(command),
                )
                return True
        except Exception as exc:
            logger.warning(
                "Deleting command failed",
                extra={**self._extra(command), "error_message": str(exc)},
            )

        logger.error(
            "Command neither marked nor deleted, not executing",
            extra={**self._extra(command), "status": TickOutcome.MARK_FAILED.value},
        )
        return False

    def _recheck(self, command: PendingCommand) -> None:
        self._sleep(self.settle_s)
        try:
            pending = self.client.fetch_pending_command(self.device_id, self.kind)
        except Exception as exc:
            logger.warning(
                "Post-mark check failed",
                extra={**self._extra(command), "error_message": str(exc)},
            )
            return
        if pending is None or pending.id != command.id:
            return
        logger.warning(
            "Command still pending after mark, deleting",
            extra=self._extra(command),
        )
        try:
            self.client.delete_command(command.id)
        except Exception as exc:
            logger.warning(
                "Repair delete failed",
                extra={**self._extra(command), "error_message": str(exc)},
            )
        self._sleep(self.repair_pause_s)

    def _execute(self, command: PendingCommand) -> TickOutcome:
        started = self._clock()
        try:
            self.executor.execute(command)
        except Exception as exc:
            logger.error(
                "Command execution failed",
                extra={
                    **self._extra(command),
                    "status": TickOutcome.FAILED.value,
                    "error_code": exc.__class__.__name__,
                    "error_message": str(exc),
                },
            )
            return TickOutcome.FAILED
        duration_ms = int((self._clock() - started) * 1000)
        logger.info(
            "Command executed",
            extra={
                **self._extra(command),
                "status": TickOutcome.EXECUTED.value,
                "duration_ms": duration_ms,
            },
        )
        return TickOutcome.EXECUTED

    def _extra(self, command: PendingCommand) -> dict[str, object]:
        return {
            "loop": self.name,
            "command_id": command.id,
            "command_kind": self.kind.value,
        }

    def run(self, stop_event: threading.Event) -> None:
        logger.info(
            "Command poller started",
            extra={"loop": self.name, "command_kind": self.kind.value},
        )
        while not stop_event.is_set():
            delay = self.timing.poll_s
            try:
                if self.tick() is TickOutcome.MARK_FAILED:
                    delay = self.timing.error_retry_s
            except Exception as exc:
                logger.warning(
                    "Command poll failed",
                    extra={
                        "loop": self.name,
                        "command_kind": self.kind.value,
                        "error_message": str(exc),
                    },
                )
                delay = self.timing.error_retry_s
            stop_event.wait(delay)

    def status(self) -> dict[str, object]:
        return {
            "kind": self.kind.value,
            "state": self.state.value,
            "processed": len(self.ledger),
            "last_outcome": self.last_outcome.value if self.last_outcome else None,
        }
