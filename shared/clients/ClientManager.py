from importlib import import_module
from typing import Generic, TypeVar

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig

ClientT = TypeVar("ClientT", bound=ClientInterface)


class ClientManager(Generic[ClientT]):
    """Builds the client selected by ``<TYPE>_ENGINE``.

    An engine "foo" of client type "llm" must live in
    ``shared/clients/llm/foo/LLMClientFoo.py`` and define ``LLMClientFoo``.
    Subclasses only name the client type, its class prefix and the default engine.
    """

    client_type: str = ""
    class_prefix: str = ""
    default_engine: str = ""

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client: ClientT = self._initialize_client()

    def get_engine(self) -> str:
        engine = self.helper_config.get_string_val(f"{self.client_type.upper()}_ENGINE", default=self.default_engine)
        return engine.strip().lower()

    def _initialize_client(self) -> ClientT:
        """
        Raises:
            ValueError: If no client class exists for the configured engine.
        """
        engine = self.get_engine()
        class_name = f"{self.class_prefix}{engine.capitalize()}"
        try:
            module = import_module(f"shared.clients.{self.client_type}.{engine}.{class_name}")
            client_class = getattr(module, class_name)
        except (ImportError, AttributeError) as e:
            raise ValueError(f"Unsupported {self.class_prefix.removesuffix('Client')} engine '{engine}'. Error: {e}")
        client = client_class(helper_config=self.helper_config)
        self.logging.debug("Instantiated %s client for engine: %s", self.client_type, engine)
        return client

    def get_client(self) -> ClientT:
        return self.client
