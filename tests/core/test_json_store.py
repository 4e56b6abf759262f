import json

import pytest

from fleetpin_core.commands.types import CommandKind
from fleetpin_core.errors import TransientRemoteError, ValidationError
from fleetpin_core.stores.json_store import JsonRemoteStateClient
from fleetpin_core.stores.paths import commands_uri, devices_uri


@pytest.fixture
def store(tmp_path) -> JsonRemoteStateClient:
    return JsonRemoteStateClient(str(tmp_path / "remote"))


@pytest.mark.core
def test_command_lifecycle(store: JsonRemoteStateClient, tmp_path) -> None:
    assert store.fetch_pending_command("device-1", CommandKind.REBOOT) is None

    command = store.enqueue_command("device-1", CommandKind.REBOOT)
    pending = store.fetch_pending_command("device-1", CommandKind.REBOOT)

    assert pending == command
    assert store.fetch_pending_command("device-1", CommandKind.RESTART_APP) is None
    assert store.mark_executed(command.id) is True
    assert store.fetch_pending_command("device-1", CommandKind.REBOOT) is None

    payload = json.loads((tmp_path / "remote" / "control" / "commands.json").read_text())
    assert payload["commands"][0]["executed"] is True
    assert payload["commands"][0]["executed_at"]


@pytest.mark.core
def test_missing_command(store: JsonRemoteStateClient) -> None:
    assert store.mark_executed("nope") is False
    assert store.delete_command("nope") is False


@pytest.mark.core
def test_delete_command(store: JsonRemoteStateClient) -> None:
    command = store.enqueue_command("device-1", CommandKind.RESTART_APP)
    assert store.delete_command(command.id) is True
    assert store.fetch_pending_command("device-1", CommandKind.RESTART_APP) is None


@pytest.mark.core
def test_flags_and_heartbeat(store: JsonRemoteStateClient) -> None:
    assert store.fetch_flag("device-1", "active") is None

    store.upsert_heartbeat("device-1", unit_name="lobby")
    assert store.fetch_flag("device-1", "active") is False

    state = store.set_desired_state("device-1", kiosk=True)
    assert state.active is False
    assert state.kiosk is True
    assert store.fetch_flag("device-1", "kiosk") is True

    # Heartbeats never touch the flags.
    store.upsert_heartbeat("device-1")
    assert store.fetch_flag("device-1", "kiosk") is True


@pytest.mark.core
def test_unknown_flag_rejected(store: JsonRemoteStateClient) -> None:
    with pytest.raises(ValidationError):
        store.fetch_flag("device-1", "locked")


@pytest.mark.core
def test_corrupt_document_is_transient(store: JsonRemoteStateClient, tmp_path) -> None:
    path = tmp_path / "remote" / "control" / "commands.json"
    path.parent.mkdir(parents=True)
    path.write_text("{broken", encoding="utf-8")

    with pytest.raises(TransientRemoteError):
        store.fetch_pending_command("device-1", CommandKind.REBOOT)


@pytest.mark.core
def test_paths() -> None:
    assert devices_uri("gs://bucket/fleet") == "gs://bucket/fleet/control/devices.json"
    assert commands_uri("/srv/fleet").endswith("control/commands.json")
