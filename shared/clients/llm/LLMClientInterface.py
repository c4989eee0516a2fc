from abc import abstractmethod

import httpx

from shared.clients.HttpClientInterface import HttpClientInterface
from shared.exceptions.errors import UpstreamServiceError, ValidationError
from shared.helper.HelperConfig import HelperConfig

SYSTEM_PROMPT = """You are an expert in stock photography and image analysis. Your task is to:
1. Describe the main subject and composition of the image
2. Note key visual elements that make it suitable for stock photography
3. Identify potential commercial or editorial use cases
4. Highlight any unique or distinctive features
Keep descriptions professional, objective, and optimized for stock photography platforms."""

USER_PROMPT = (
    "Analyze this image and provide a detailed description suitable for stock photography. "
    "Focus on visual elements, composition, mood, and potential commercial applications. "
    "Keep the description concise but comprehensive."
)

DEFAULT_MIME_TYPE = "image/jpeg"


class LLMClientInterface(HttpClientInterface):
    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

        # generation config
        self.max_tokens = helper_config.get_number_val(f"{self.get_client_type().upper()}_MAX_TOKENS", default=500)
        self.temperature = helper_config.get_number_val(f"{self.get_client_type().upper()}_TEMPERATURE", default=0.7)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "llm"

    @abstractmethod
    def get_model(self) -> str:
        """Returns the vision model used for descriptions (e.g. "gpt-4o")."""
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_chat(self) -> str:
        """Returns the endpoint path for chat/completion requests (e.g. "/v1/chat/completions")."""
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_describe_payload(self, data_uri: str, mime_type: str, base64_data: str) -> dict:
        """Build the backend-specific request body for an image description request.

        Args:
            data_uri (str): The image as "data:<mime>;base64,<data>".
            mime_type (str): The image mime type, e.g. "image/png".
            base64_data (str): The bare base64 payload without prefix.

        Returns:
            dict: JSON-serialisable request body.
        """
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    @abstractmethod
    def extract_chat_response(self, response_data: dict) -> str | None:
        """Extract the assistant reply text from a raw chat API response.

        Returns:
            str | None: The reply text, None if the backend returned none.
        """
        pass

    @staticmethod
    def split_base64_image(base64_image: str) -> tuple[str, str, str]:
        """Normalise an image given either as bare base64 or as a data URI.

        Bare base64 is taken to be JPEG.

        Returns:
            tuple[str, str, str]: (data_uri, mime_type, base64_data)

        Raises:
            ValidationError: If the string is empty or a malformed data URI.
        """
        base64_image = (base64_image or "").strip()
        if not base64_image:
            raise ValidationError("No image data provided.")
        if not base64_image.startswith("data:"):
            return f"data:{DEFAULT_MIME_TYPE};base64,{base64_image}", DEFAULT_MIME_TYPE, base64_image

        header, sep, data = base64_image.partition(",")
        if not sep or not data or not header.endswith(";base64"):
            raise ValidationError("Invalid image encoding. Expected a base64 data URI.")
        mime_type = header[len("data:"):-len(";base64")] or DEFAULT_MIME_TYPE
        return base64_image, mime_type, data

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_describe_image(self, base64_image: str) -> str:
        """Ask the vision model for a stock-photography description of the image.

        Args:
            base64_image (str): Bare base64 (assumed JPEG) or a data URI.

        Returns:
            str: The generated description.

        Raises:
            ValidationError: If the image string is empty or malformed.
            UpstreamAuthError: If the backend rejected the credentials.
            UpstreamRateLimitError: If the backend throttled the request.
            UpstreamInputError: If the backend refused the image.
            UpstreamServiceError: On any other failure or an empty reply.
        """
        data_uri, mime_type, base64_data = self.split_base64_image(base64_image)
        self.logging.info("Generating description via %s (%s)", self.get_engine_name(), self.get_model())
        body = self.get_describe_payload(data_uri=data_uri, mime_type=mime_type, base64_data=base64_data)
        response: httpx.Response = await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_chat(),
            json=body,
            raise_on_error=True,
        )
        try:
            description = self.extract_chat_response(response.json())
        except ValueError as e:
            raise UpstreamServiceError(f"{self.get_engine_name()} returned an unreadable response: {e}") from e
        if not description or not description.strip():
            raise UpstreamServiceError("No description generated.")
        return description.strip()
