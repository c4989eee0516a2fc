from shared.clients.ClientManager import ClientManager
from shared.clients.storage.StorageClientInterface import StorageClientInterface


class StorageClientManager(ClientManager[StorageClientInterface]):
    """STORAGE_ENGINE: local (default) or gcs."""

    client_type = "storage"
    class_prefix = "StorageClient"
    default_engine = "local"
