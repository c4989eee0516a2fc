from shared.clients.llm.LLMClientInterface import SYSTEM_PROMPT, USER_PROMPT, LLMClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class LLMClientOpenai(LLMClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default="https://api.openai.com", val_type="string")
        self._api_key = self.get_config_val("API_KEY", default=None, val_type="string")
        self._org_id = self.get_config_val("ORG_ID", default="", val_type="string")
        self._model = self.get_config_val("MODEL", default="gpt-4o", val_type="string")
        self._image_detail = self.get_config_val("IMAGE_DETAIL", default="high", val_type="string")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Openai"

    def get_model(self) -> str:
        return self._model

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default="https://api.openai.com"),
            EnvConfig(env_key="API_KEY", val_type="string", default=None),
            EnvConfig(env_key="ORG_ID", val_type="string", default=""),
            EnvConfig(env_key="MODEL", val_type="string", default="gpt-4o"),
            EnvConfig(env_key="IMAGE_DETAIL", val_type="string", default="high"),
        ]

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        headers = {"Authorization": f"Bearer {self._api_key}"}
        if self._org_id:
            headers["OpenAI-Organization"] = self._org_id
        return headers

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return "/v1/models"

    def _get_endpoint_chat(self) -> str:
        return "/v1/chat/completions"

    ################ PAYLOAD BUILDER ##################
    def get_describe_payload(self, data_uri: str, mime_type: str, base64_data: str) -> dict:
        """Build the chat completions body with a text part and an image_url part."""
        return {
            "model": self._model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": USER_PROMPT},
                        {"type": "image_url", "image_url": {"url": data_uri, "detail": self._image_detail}},
                    ],
                },
            ],
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
        }

    ##########################################
    ################# OTHER ##################
    ##########################################

    def extract_chat_response(self, response_data: dict) -> str | None:
        """Extract choices[0].message.content from a chat completions response."""
        choices = response_data.get("choices") or []
        if not choices:
            return None
        message = choices[0].get("message") or {}
        return message.get("content")
