"""Host capabilities consumed by the agent."""

from fleetpin_core.platform.interfaces import (
    AppBlocker,
    AppController,
    ApprovedAppsSurface,
    ForegroundProbe,
    HardwareIdentity,
    HostCapabilities,
    RebootStrategy,
    ScreenPinning,
)
from fleetpin_core.platform.reboot import (
    DeviceAdminReboot,
    RawReboot,
    RebootChain,
    SuperuserReboot,
)

__all__ = [
    "AppBlocker",
    "AppController",
    "ApprovedAppsSurface",
    "DeviceAdminReboot",
    "ForegroundProbe",
    "HardwareIdentity",
    "HostCapabilities",
    "RawReboot",
    "RebootChain",
    "RebootStrategy",
    "ScreenPinning",
    "SuperuserReboot",
]
