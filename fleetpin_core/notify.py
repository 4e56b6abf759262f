from __future__ import annotations

import os
import socket

from fleetpin_core.logging import get_logger

logger = get_logger(__name__)


def sd_notify(message: str) -> bool:
    """Send a state line to the service manager if it is listening.

    Returns ``False`` when ``NOTIFY_SOCKET`` is unset (not run under systemd).
    """
    address = os.getenv("NOTIFY_SOCKET")
    if not address:
        logger.debug("Service status", extra={"status": message})
        return False
    if address.startswith("@"):
        address = "\0" + address[1:]
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
    try:
        sock.sendto(message.encode("utf-8"), address)
        return True
    except OSError as exc:
        logger.warning(
            "Service manager notify failed",
            extra={"status": message, "error_message": str(exc)},
        )
        return False
    finally:
        sock.close()
