from abc import abstractmethod
from typing import Any

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig


class DBClientInterface(ClientInterface):
    """Document database handle.

    Constructed once at process start, booted in the app lifespan and passed
    to the services that need it; there is no module-level connection cache.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "db"

    ##########################################
    ################ GETTER ##################
    ##########################################

    @abstractmethod
    def get_database_name(self) -> str:
        """Returns the name of the database all collections live in."""
        pass

    @abstractmethod
    def get_collection(self, name: str) -> Any:
        """Returns the async collection handle for the given name.

        Raises:
            StorageUnavailable: If the client has not been booted.
        """
        pass
