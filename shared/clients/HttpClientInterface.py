from abc import abstractmethod
from typing import Any

import httpx

from shared.clients.ClientInterface import ClientInterface
from shared.exceptions.errors import (
    UpstreamAuthError,
    UpstreamInputError,
    UpstreamRateLimitError,
    UpstreamServiceError,
)
from shared.helper.HelperConfig import HelperConfig

# status codes meaning the backend refused what we sent, not that it is broken
_INPUT_STATUSES = (400, 413, 415, 422)


class HttpClientInterface(ClientInterface):
    """Client whose backend is reached over HTTP through a shared httpx.AsyncClient."""

    def __init__(self, helper_config: HelperConfig):
        self._client: httpx.AsyncClient | None = None
        super().__init__(helper_config=helper_config)

    ################ AUTH ##################
    @abstractmethod
    def _get_auth_header(self) -> dict:
        """Headers that authenticate every request, empty when the backend is open."""
        pass

    async def _ensure_auth(self) -> None:
        """Runs before every request. Engines with expiring credentials refresh them here."""
        return None

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_base_url(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_healthcheck(self) -> str:
        pass

    def _build_url(self, endpoint: str) -> str:
        path = endpoint.strip().lstrip("/")
        base = self._get_base_url().rstrip("/")
        return f"{base}/{path}" if path else base

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    async def boot(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        """Open the HTTP session. Tests pass an httpx.MockTransport here."""
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=transport)

    async def close(self) -> None:
        if self._client is None:
            return
        client, self._client = self._client, None
        await client.aclose()

    async def do_healthcheck(self) -> bool:
        try:
            response = await self.do_request("GET", self._get_endpoint_healthcheck())
        except UpstreamServiceError:
            return False
        return response.is_success

    ##########################################
    ############### REQUESTS #################
    ##########################################

    def _raise_for_status(self, response: httpx.Response, url: str) -> None:
        """Turn a non-2xx response into the matching UpstreamServiceError subclass."""
        if response.is_success:
            return
        status = response.status_code
        excerpt = response.text[:500]
        self.logging.error("%s %s answered %d: %s", self.get_engine_name(), url, status, excerpt)

        prefix = f"{self.get_engine_name()} request failed with status {status}"
        if status in (401, 403):
            raise UpstreamAuthError(f"{prefix}: invalid credentials.")
        if status == 429:
            raise UpstreamRateLimitError(f"{prefix}: rate limit exceeded, try again later.")
        if status in _INPUT_STATUSES:
            raise UpstreamInputError(f"{prefix}: payload rejected.", details={"response": excerpt})
        raise UpstreamServiceError(f"{prefix}.")

    async def do_request(
        self,
        method: str,
        endpoint: str = "",
        *,
        json: Any = None,
        content: bytes | None = None,
        params: dict | None = None,
        headers: dict | None = None,
        raise_on_error: bool = False,
    ) -> httpx.Response:
        """Send one request to ``<base url>/<endpoint>``.

        Auth headers are always sent; ``headers`` are applied on top of them.
        Pass either ``json`` or raw ``content`` as the body. For raw content
        the caller sets the Content-Type.

        Raises:
            UpstreamServiceError: When boot() was not called or the backend
                cannot be reached. With ``raise_on_error`` also on any non-2xx
                answer, as the subclass matching the status.
        """
        if self._client is None:
            raise UpstreamServiceError("HTTP client not initialised. Call boot() before making requests.")

        await self._ensure_auth()
        url = self._build_url(endpoint)
        request_headers = {**self._get_auth_header(), **(headers or {})}
        body = {"content": content} if content is not None else {"json": json} if json is not None else {}

        try:
            response = await self._client.request(method, url, params=params, headers=request_headers, **body)
        except httpx.HTTPError as e:
            self.logging.error("%s %s failed: %s", method, url, e)
            raise UpstreamServiceError(f"{self.get_engine_name()} is not reachable: {e}") from e

        if raise_on_error:
            self._raise_for_status(response, url)
        return response
