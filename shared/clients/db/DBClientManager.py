from shared.clients.ClientManager import ClientManager
from shared.clients.db.DBClientInterface import DBClientInterface


class DBClientManager(ClientManager[DBClientInterface]):
    """DB_ENGINE: mongo (default)."""

    client_type = "db"
    class_prefix = "DBClient"
    default_engine = "mongo"
