from shared.clients.ClientManager import ClientManager
from shared.clients.llm.LLMClientInterface import LLMClientInterface


class LLMClientManager(ClientManager[LLMClientInterface]):
    """LLM_ENGINE: openai (default) or ollama."""

    client_type = "llm"
    class_prefix = "LLMClient"
    default_engine = "openai"
