from typing import Any

from pymongo import AsyncMongoClient
from pymongo.errors import PyMongoError

from shared.clients.db.DBClientInterface import DBClientInterface
from shared.exceptions.errors import StorageUnavailable
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class DBClientMongo(DBClientInterface):
    def __init__(self, helper_config: HelperConfig, client: Any | None = None):
        """
        Args:
            helper_config (HelperConfig): Configuration source.
            client: Optional pre-built async Mongo client. When given, boot()
                uses it as-is and close() leaves it open.
        """
        super().__init__(helper_config=helper_config)
        self._uri = self.get_config_val("URI", default=None, val_type="string")
        self._database_name = self.get_config_val("DATABASE", default="AutoStock", val_type="string")
        self._client = client
        self._owns_client = client is None
        self._db = None

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Mongo"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="URI", val_type="string", default=None),
            EnvConfig(env_key="DATABASE", val_type="string", default="AutoStock"),
        ]

    def get_database_name(self) -> str:
        return self._database_name

    def get_collection(self, name: str) -> Any:
        if self._db is None:
            raise StorageUnavailable("Database client not initialised. Call boot() before using collections.")
        return self._db[name]

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    async def boot(self) -> None:
        if self._client is None:
            self._client = AsyncMongoClient(
                self._uri,
                tz_aware=True,
                serverSelectionTimeoutMS=int(self.timeout * 1000),
            )
        self._db = self._client[self._database_name]
        self.logging.info("Database client ready (database=%r).", self._database_name)

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.close()
            self._client = None
        self._db = None

    async def do_healthcheck(self) -> bool:
        if self._db is None:
            return False
        try:
            await self._db.command("ping")
        except PyMongoError as e:
            self.logging.warning("Database ping failed: %s", e)
            return False
        return True
