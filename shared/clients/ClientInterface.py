from abc import ABC, abstractmethod
from typing import Any, Callable

from shared.models.config import EnvConfig
from shared.helper.HelperConfig import HelperConfig


class ClientInterface(ABC):
    """Base of every backend client (database, LLM, blob storage).

    Settings are looked up as ``<TYPE>_<ENGINE>_<KEY>`` environment variables
    and checked when the client is constructed, so a misconfigured engine
    fails at startup rather than on its first request. After construction a
    client is started with boot() and released with close().
    """

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self.timeout = helper_config.get_number_val(f"{self.get_client_type().upper()}_TIMEOUT", default=30.0)
        self.validate_full_configuration()

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def validate_full_configuration(self) -> None:
        """
        Reads every declared setting once and reports all problems together.

        Raises:
            ValueError: One message per missing or unparsable setting.
        """
        problems = []
        for config in self._get_required_config():
            try:
                self.get_config_val(raw_key=config.env_key, default=config.default, val_type=config.val_type)
            except ValueError as e:
                problems.append(str(e))
        if problems:
            raise ValueError(f"Invalid {self.get_client_type()} client configuration: " + " ".join(problems))

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_client_type(self) -> str:
        """e.g. "llm" """
        return self._get_client_type().lower()

    def get_engine_name(self) -> str:
        """e.g. "openai" """
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_client_type(self) -> str:
        pass

    @abstractmethod
    def _get_engine_name(self) -> str:
        pass

    ################ CONFIG ##################
    @abstractmethod
    def _get_required_config(self) -> list[EnvConfig]:
        """
        Declares the settings this engine reads. An entry without a default is mandatory.
        """
        pass

    def _get_config_key_name(self, raw_key: str) -> str:
        return "_".join((self.get_client_type(), self.get_engine_name(), raw_key)).upper()

    def _get_config_reader(self, val_type: str) -> Callable[..., Any]:
        readers = {
            "string": self._helper_config.get_string_val,
            "number": self._helper_config.get_number_val,
            "bool": self._helper_config.get_bool_val,
            "list": self._helper_config.get_list_val,
        }
        if val_type not in readers:
            raise ValueError(f"Unsupported config value type '{val_type}' in {self.get_client_type()} client '{self.get_engine_name()}'.")
        return readers[val_type]

    def get_config_val(self, raw_key: str, default: Any = None, val_type: str = "string") -> Any:
        """
        Reads one engine setting, e.g. raw_key "API_KEY" of the openai LLM client reads LLM_OPENAI_API_KEY.

        Args:
            raw_key (str): Key suffix without the type/engine prefix
            default (Any): Used when the variable is unset. None makes it mandatory
            val_type (str): "string", "number", "bool" or "list"
        """
        return self._get_config_reader(val_type)(self._get_config_key_name(raw_key), default=default)

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    @abstractmethod
    async def boot(self) -> None:
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    @abstractmethod
    async def do_healthcheck(self) -> bool:
        """True when the backend answered."""
        pass
