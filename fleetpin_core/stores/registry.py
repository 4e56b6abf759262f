from __future__ import annotations

from fleetpin_core.config import Config
from fleetpin_core.stores.interfaces import RemoteStateClient
from fleetpin_core.stores.json_store import JsonRemoteStateClient
from fleetpin_core.stores.memory_store import InMemoryRemoteStateClient
from fleetpin_core.stores.timeout import TimedRemoteStateClient


def get_remote_client(config: Config) -> RemoteStateClient:
    backend = config.remote_store
    if backend == "memory":
        return InMemoryRemoteStateClient()
    if backend == "json":
        if not config.remote_store_uri:
            raise ValueError("REMOTE_STORE_URI is required for the json store")
        return JsonRemoteStateClient(config.remote_store_uri)
    if backend == "firestore":
        raise ValueError("Firestore store is provided by fleetpin_gcp.stores.registry")
    raise ValueError(f"Unsupported remote store backend: {backend}")


def with_timeout(client: RemoteStateClient, config: Config) -> TimedRemoteStateClient:
    return TimedRemoteStateClient(client, config.remote_timeout_s)
