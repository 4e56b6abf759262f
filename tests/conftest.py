import os
import threading

import pytest

from fleetpin_core.commands.types import CommandKind
from fleetpin_core.config import LoopTiming, get_config
from fleetpin_core.platform.memory import MemoryHost, build_memory_host
from fleetpin_core.prefs import LocalPreferences
from fleetpin_core.stores.memory_store import InMemoryRemoteStateClient

DEVICE_ID = "device-1"
TARGET_APP = "com.example.menu"
CONTROLLER_APP = "com.fleetpin.controller"


@pytest.fixture(autouse=True)
def _fleetpin_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    def set_default(name: str, value: str) -> None:
        if not os.getenv(name):
            monkeypatch.setenv(name, value)

    set_default("ENV", "test")
    set_default("LOG_LEVEL", "INFO")
    monkeypatch.setenv("FLEETPIN_STATE_DIR", str(tmp_path / "state"))
    monkeypatch.setenv("REMOTE_STORE", "memory")
    monkeypatch.setenv("HOST_PLATFORM", "memory")
    monkeypatch.delenv("NOTIFY_SOCKET", raising=False)
    monkeypatch.delenv("DEVICE_ID", raising=False)
    get_config.cache_clear()
    yield
    get_config.cache_clear()


@pytest.fixture
def remote() -> InMemoryRemoteStateClient:
    client = InMemoryRemoteStateClient()
    client.upsert_heartbeat(DEVICE_ID)
    return client


@pytest.fixture
def prefs(tmp_path) -> LocalPreferences:
    store = LocalPreferences(tmp_path / "prefs.json")
    store.set_target_app(TARGET_APP)
    return store


@pytest.fixture
def memory_host() -> MemoryHost:
    return MemoryHost(foreground=TARGET_APP, hardware_id="abc123")


@pytest.fixture
def host(memory_host):
    return build_memory_host(memory_host)


@pytest.fixture
def fast_timing() -> LoopTiming:
    return LoopTiming(poll_s=0.01, error_retry_s=0.01)


@pytest.fixture
def stop_event():
    event = threading.Event()
    yield event
    event.set()


@pytest.fixture
def no_sleep():
    def _sleep(_seconds: float) -> None:
        return None

    return _sleep


@pytest.fixture
def enqueue(remote):
    def _enqueue(kind: CommandKind = CommandKind.RESTART_APP):
        return remote.enqueue_command(DEVICE_ID, kind)

    return _enqueue
