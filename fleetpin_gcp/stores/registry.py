from __future__ import annotations

from google.cloud import firestore

from fleetpin_core.config import Config
from fleetpin_core.stores import registry as core_registry
from fleetpin_core.stores.interfaces import RemoteStateClient
from fleetpin_gcp.stores.firestore_store import FirestoreRemoteStateClient


def get_remote_client(
    config: Config,
    *,
    client: firestore.Client | None = None,
) -> RemoteStateClient:
    if config.remote_store != "firestore":
        return core_registry.get_remote_client(config)
    firestore_client = client or firestore.Client(project=config.firestore_project)
    return FirestoreRemoteStateClient(
        firestore_client,
        collection_prefix=config.firestore_collection_prefix,
        request_timeout_s=config.remote_timeout_s,
    )
