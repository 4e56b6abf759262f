from fleetpin_core.stores.interfaces import OperatorStateClient, RemoteStateClient
from fleetpin_core.stores.json_store import JsonRemoteStateClient
from fleetpin_core.stores.memory_store import InMemoryRemoteStateClient
from fleetpin_core.stores.registry import get_remote_client, with_timeout
from fleetpin_core.stores.timeout import TimedRemoteStateClient

__all__ = [
    "InMemoryRemoteStateClient",
    "JsonRemoteStateClient",
    "OperatorStateClient",
    "RemoteStateClient",
    "TimedRemoteStateClient",
    "get_remote_client",
    "with_timeout",
]
