import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

from fleetpin_core.commands.types import CommandKind

_ALLOWED_STORES = {"json", "memory", "firestore"}
_ALLOWED_PLATFORMS = {"adb", "memory"}


@dataclass(frozen=True)
class LoopTiming:
    poll_s: float
    error_retry_s: float


@dataclass(frozen=True)
class Config:
    env: str
    log_level: str
    state_dir: str
    prefs_path: str
    device_id_override: str | None
    unit_name: str | None
    remote_store: str
    remote_store_uri: str | None
    firestore_project: str | None
    firestore_collection_prefix: str
    remote_timeout_s: float
    reboot_poll_s: float
    reboot_error_retry_s: float
    restart_app_poll_s: float
    restart_app_error_retry_s: float
    reconcile_poll_s: float
    reconcile_error_retry_s: float
    command_settle_s: float
    command_repair_pause_s: float
    restart_app_cooldown_s: float
    reboot_cooldown_s: float
    foreground_settle_s: float
    supervisor_restart_delay_s: float
    heartbeat_interval_s: float
    host_platform: str
    adb_path: str
    adb_serial: str | None
    controller_app_id: str
    agent_status_port: int

    def command_timing(self, kind: CommandKind) -> LoopTiming:
        if kind is CommandKind.REBOOT:
            return LoopTiming(self.reboot_poll_s, self.reboot_error_retry_s)
        return LoopTiming(self.restart_app_poll_s, self.restart_app_error_retry_s)

    def command_cooldown_s(self, kind: CommandKind) -> float:
        if kind is CommandKind.REBOOT:
            return self.reboot_cooldown_s
        return self.restart_app_cooldown_s

    def reconcile_timing(self) -> LoopTiming:
        return LoopTiming(self.reconcile_poll_s, self.reconcile_error_retry_s)

    @classmethod
    def from_env(cls) -> "Config":
        missing: list[str] = []

        def optional(name: str) -> str | None:
            value = os.getenv(name)
            if value is None:
                return None
            value = value.strip()
            return value or None

        def seconds(name: str, default: float) -> float:
            raw = optional(name)
            if raw is None:
                return default
            value = _parse_float(raw, name)
            if value < 0:
                raise ValueError(f"{name} must be >= 0")
            return value

        env = optional("ENV") or "local"
        log_level = (optional("LOG_LEVEL") or "INFO").upper()

        state_dir = optional("FLEETPIN_STATE_DIR") or str(
            Path.home() / ".fleetpin"
        )
        prefs_path = optional("FLEETPIN_PREFS_PATH") or str(
            Path(state_dir) / "prefs.json"
        )

        remote_store = (optional("REMOTE_STORE") or "json").lower()
        if remote_store not in _ALLOWED_STORES:
            allowed = ", ".join(sorted(_ALLOWED_STORES))
            raise ValueError(f"REMOTE_STORE must be one of: {allowed}")
        remote_store_uri = optional("REMOTE_STORE_URI")
        if remote_store == "json" and not remote_store_uri:
            missing.append("REMOTE_STORE_URI")

        host_platform = (optional("HOST_PLATFORM") or "adb").lower()
        if host_platform not in _ALLOWED_PLATFORMS:
            allowed = ", ".join(sorted(_ALLOWED_PLATFORMS))
            raise ValueError(f"HOST_PLATFORM must be one of: {allowed}")

        raw_port = optional("AGENT_STATUS_PORT") or "0"
        try:
            agent_status_port = int(raw_port)
        except ValueError as exc:
            raise ValueError("AGENT_STATUS_PORT must be an integer") from exc

        remote_timeout_s = seconds("REMOTE_TIMEOUT_S", 15.0)
        if remote_timeout_s <= 0:
            raise ValueError("REMOTE_TIMEOUT_S must be > 0")

        if missing:
            missing_str = ", ".join(missing)
            raise ValueError(f"Missing required env vars: {missing_str}")

        return cls(
            env=env,
            log_level=log_level,
            state_dir=state_dir,
            prefs_path=prefs_path,
            device_id_override=optional("DEVICE_ID"),
            unit_name=optional("UNIT_NAME"),
            remote_store=remote_store,
            remote_store_uri=remote_store_uri,
            firestore_project=optional("FIRESTORE_PROJECT"),
            firestore_collection_prefix=optional("FIRESTORE_COLLECTION_PREFIX")
            or "",
            remote_timeout_s=remote_timeout_s,
            reboot_poll_s=seconds("REBOOT_POLL_S", 30.0),
            reboot_error_retry_s=seconds("REBOOT_ERROR_RETRY_S", 60.0),
            restart_app_poll_s=seconds("RESTART_APP_POLL_S", 30.0),
            restart_app_error_retry_s=seconds("RESTART_APP_ERROR_RETRY_S", 60.0),
            reconcile_poll_s=seconds("RECONCILE_POLL_S", 5.0),
            reconcile_error_retry_s=seconds("RECONCILE_ERROR_RETRY_S", 10.0),
            command_settle_s=seconds("COMMAND_SETTLE_S", 2.0),
            command_repair_pause_s=seconds("COMMAND_REPAIR_PAUSE_S", 1.0),
            restart_app_cooldown_s=seconds("RESTART_APP_COOLDOWN_S", 5.0),
            reboot_cooldown_s=seconds("REBOOT_COOLDOWN_S", 5.0),
            foreground_settle_s=seconds("FOREGROUND_SETTLE_S", 0.5),
            supervisor_restart_delay_s=seconds("SUPERVISOR_RESTART_DELAY_S", 1.0),
            heartbeat_interval_s=seconds("HEARTBEAT_INTERVAL_S", 300.0),
            host_platform=host_platform,
            adb_path=optional("ADB_PATH") or "adb",
            adb_serial=optional("ADB_SERIAL"),
            controller_app_id=optional("CONTROLLER_APP_ID")
            or "com.fleetpin.controller",
            agent_status_port=agent_status_port,
        )


def _parse_float(value: str, name: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number") from exc


@lru_cache(maxsize=1)
def get_config() -> Config:
    return Config.from_env()
