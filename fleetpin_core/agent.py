from __future__ import annotations

import os
import signal
import threading
from dataclasses import dataclass, field
from typing import Any, Callable

from fleetpin_core.commands.executors import RebootExecutor, RestartAppExecutor
from fleetpin_core.commands.poller import CommandExecutor, CommandPoller
from fleetpin_core.commands.types import CommandKind
from fleetpin_core.config import Config, get_config
from fleetpin_core.foreground import ForegroundGuard
from fleetpin_core.heartbeat import HeartbeatLoop
from fleetpin_core.identity import resolve_device_id
from fleetpin_core.logging import configure_logging, get_logger
from fleetpin_core.platform.adb import build_adb_host
from fleetpin_core.platform.interfaces import HostCapabilities
from fleetpin_core.platform.memory import build_memory_host
from fleetpin_core.platform.reboot import RebootChain
from fleetpin_core.prefs import LocalPreferences
from fleetpin_core.reconcile.reconciler import StateReconciler
from fleetpin_core.reconcile.types import LifecycleDecision, LifecycleEvent
from fleetpin_core.stores.interfaces import RemoteStateClient
from fleetpin_core.stores.registry import get_remote_client, with_timeout
from fleetpin_core.stores.timeout import TimedRemoteStateClient
from fleetpin_core.supervisor import ServiceSupervisor

SERVICE_NAME = "fleetpin-agent"

logger = get_logger(__name__)

ClientFactory = Callable[[Config], RemoteStateClient]
AppFactory = Callable[["Agent"], Any]


@dataclass
class Agent:
    config: Config
    device_id: str
    prefs: LocalPreferences
    client: RemoteStateClient
    host: HostCapabilities
    pollers: dict[CommandKind, CommandPoller]
    reconciler: StateReconciler
    heartbeat: HeartbeatLoop
    supervisor: ServiceSupervisor
    stop_event: threading.Event = field(default_factory=threading.Event)
    timed_clients: list[TimedRemoteStateClient] = field(default_factory=list)

    def handle_lifecycle(self, event: LifecycleEvent) -> LifecycleDecision:
        return self.reconciler.handle_lifecycle(event)

    def stop(self) -> None:
        self.stop_event.set()

    def close(self) -> None:
        for timed in self.timed_clients:
            timed.shutdown()

    def status(self) -> dict[str, Any]:
        return {
            "device_id": self.device_id,
            "target_app": self.prefs.target_app(),
            "reconciler": self.reconciler.status(),
            "pollers": {
                kind.value: poller.status() for kind, poller in self.pollers.items()
            },
            "loops": self.supervisor.status(),
            "heartbeats": self.heartbeat.beats,
        }


def build_host(config: Config) -> HostCapabilities:
    if config.host_platform == "memory":
        return build_memory_host()
    return build_adb_host(
        config.adb_path,
        config.adb_serial,
        config.controller_app_id,
        timeout_s=config.remote_timeout_s,
    )


def resolve_agent_device_id(
    config: Config,
    prefs: LocalPreferences,
    host: HostCapabilities,
) -> str:
    if config.device_id_override or prefs.device_id():
        return resolve_device_id(prefs, None, config.device_id_override)
    return resolve_device_id(prefs, host.identity.hardware_id())


def build_agent(
    config: Config,
    *,
    client: RemoteStateClient | None = None,
    host: HostCapabilities | None = None,
    stop_event: threading.Event | None = None,
    sleep: Callable[[float], None] | None = None,
) -> Agent:
    stop_event = stop_event or threading.Event()
    host = host or build_host(config)
    prefs = LocalPreferences(config.prefs_path)
    device_id = resolve_agent_device_id(config, prefs, host)
    remote = client or get_remote_client(config)
    timed_clients: list[TimedRemoteStateClient] = []

    def timed() -> TimedRemoteStateClient:
        # One bounded client per loop; a hung call only stalls its own loop.
        wrapped = with_timeout(remote, config)
        timed_clients.append(wrapped)
        return wrapped

    # In-tick delays end early once the agent is stopping.
    wait = sleep or stop_event.wait

    executors: dict[CommandKind, CommandExecutor] = {
        CommandKind.REBOOT: RebootExecutor(RebootChain(host.reboot_strategies)),
        CommandKind.RESTART_APP: RestartAppExecutor(prefs, host.apps),
    }
    pollers = {
        kind: CommandPoller(
            kind,
            device_id,
            timed(),
            executor,
            timing=config.command_timing(kind),
            settle_s=config.command_settle_s,
            repair_pause_s=config.command_repair_pause_s,
            cooldown_s=config.command_cooldown_s(kind),
            sleep=wait,
        )
        for kind, executor in executors.items()
    }
    guard = ForegroundGuard(
        host.foreground,
        host.apps,
        host.surface,
        config.controller_app_id,
        settle_s=config.foreground_settle_s,
        sleep=wait,
    )
    reconciler = StateReconciler(
        device_id,
        timed(),
        host,
        guard,
        prefs,
        timing=config.reconcile_timing(),
    )
    heartbeat = HeartbeatLoop(
        device_id,
        timed(),
        interval_s=config.heartbeat_interval_s,
        unit_name=config.unit_name or prefs.unit_name(),
        error_retry_s=config.reconcile_error_retry_s,
    )
    supervisor = ServiceSupervisor(
        [heartbeat, *pollers.values(), reconciler],
        stop_event,
        restart_delay_s=config.supervisor_restart_delay_s,
    )
    return Agent(
        config=config,
        device_id=device_id,
        prefs=prefs,
        client=remote,
        host=host,
        pollers=pollers,
        reconciler=reconciler,
        heartbeat=heartbeat,
        supervisor=supervisor,
        stop_event=stop_event,
        timed_clients=timed_clients,
    )


def _serve_status(agent: Agent, app_factory: AppFactory) -> Any:
    import uvicorn

    server = uvicorn.Server(
        uvicorn.Config(
            app_factory(agent),
            host="127.0.0.1",
            port=agent.config.agent_status_port,
            log_config=None,
        )
    )
    thread = threading.Thread(target=server.run, name="fleetpin-status", daemon=True)
    thread.start()
    logger.info(
        "Status service started",
        extra={"status": f"127.0.0.1:{agent.config.agent_status_port}"},
    )
    return server


def run_agent(
    config: Config | None = None,
    *,
    client_factory: ClientFactory | None = None,
    app_factory: AppFactory | None = None,
) -> int:
    config = config or get_config()
    version = os.getenv("FLEETPIN_VERSION")
    configure_logging(
        service=SERVICE_NAME,
        env=config.env,
        version=version,
        log_level=config.log_level,
    )
    client = client_factory(config) if client_factory else None
    agent = build_agent(config, client=client)
    configure_logging(
        service=SERVICE_NAME,
        env=config.env,
        version=version,
        device_id=agent.device_id,
        log_level=config.log_level,
    )

    def _handle_signal(signum: int, _frame: object) -> None:
        logger.info("Shutdown requested", extra={"status": signal.Signals(signum).name})
        agent.stop()

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)

    server = None
    if app_factory is not None and config.agent_status_port > 0:
        server = _serve_status(agent, app_factory)

    logger.info(
        "Fleetpin agent started",
        extra={"device_id": agent.device_id, "app_id": agent.prefs.target_app()},
    )
    try:
        agent.supervisor.run()
    finally:
        if server is not None:
            server.should_exit = True
        agent.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(run_agent())
