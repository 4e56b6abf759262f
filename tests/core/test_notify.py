import socket

import pytest

from fleetpin_core.notify import sd_notify


@pytest.mark.core
def test_no_socket_is_a_no_op() -> None:
    assert sd_notify("READY=1") is False


@pytest.mark.core
def test_sends_datagram(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    path = str(tmp_path / "notify.sock")
    server = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
    server.bind(path)
    server.settimeout(5)
    monkeypatch.setenv("NOTIFY_SOCKET", path)
    try:
        assert sd_notify("WATCHDOG=1") is True
        assert server.recv(1024) == b"WATCHDOG=1"
    finally:
        server.close()


@pytest.mark.core
def test_unreachable_socket_returns_false(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setenv("NOTIFY_SOCKET", str(tmp_path / "missing.sock"))
    assert sd_notify("READY=1") is False
