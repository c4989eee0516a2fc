import asyncio
import base64
import json
from urllib.parse import quote

from google.auth.credentials import Credentials
from google.auth.exceptions import GoogleAuthError, RefreshError
from google.auth.transport.requests import Request as AuthRequest
from google.oauth2 import service_account

from shared.clients.HttpClientInterface import HttpClientInterface
from shared.clients.storage.StorageClientInterface import StorageClientInterface
from shared.exceptions.errors import UpstreamAuthError, UpstreamServiceError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig

PUBLIC_HOST = "https://storage.googleapis.com"
GCS_SCOPES = ["https://www.googleapis.com/auth/devstorage.read_write"]
DEFAULT_KEY_FILE = "google-cloud-key.json"


class StorageClientGcs(HttpClientInterface, StorageClientInterface):
    """Google Cloud Storage through its JSON API.

    Authenticates as a service account. The key comes either base64-encoded
    from STORAGE_GCS_SERVICE_KEY or from the JSON file STORAGE_GCS_KEY_FILE
    (relative paths resolve against ROOT_DIR). Access tokens are minted with
    google-auth and refreshed whenever they are missing or about to expire.
    """

    def __init__(self, helper_config: HelperConfig, credentials: Credentials | None = None):
        super().__init__(helper_config=helper_config)
        self._base_url = self.get_config_val("BASE_URL", default=PUBLIC_HOST, val_type="string")
        self._bucket = self.get_config_val("BUCKET", default="autostock_product_photos", val_type="string")
        self._credentials = credentials or self._load_credentials()
        self._auth_request = AuthRequest()
        self._refresh_lock = asyncio.Lock()

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Gcs"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL", val_type="string", default=PUBLIC_HOST),
            EnvConfig(env_key="BUCKET", val_type="string", default="autostock_product_photos"),
            EnvConfig(env_key="SERVICE_KEY", val_type="string", default=""),
            EnvConfig(env_key="KEY_FILE", val_type="string", default=DEFAULT_KEY_FILE),
        ]

    def _load_credentials(self) -> Credentials:
        """
        Raises:
            ValueError: If neither a usable service key nor a key file is configured.
        """
        service_key = self.get_config_val("SERVICE_KEY", default="", val_type="string")
        if service_key:
            try:
                info = json.loads(base64.b64decode(service_key, validate=True))
            except ValueError as e:
                raise ValueError(f"STORAGE_GCS_SERVICE_KEY is not base64-encoded service account JSON: {e}")
            return service_account.Credentials.from_service_account_info(info, scopes=GCS_SCOPES)

        key_file = self.get_config_val("KEY_FILE", default=DEFAULT_KEY_FILE, val_type="string")
        path = self._helper_config.resolve_path(key_file)
        if not path.is_file():
            raise ValueError(f"No GCS credentials: set STORAGE_GCS_SERVICE_KEY or provide the key file '{path}'.")
        return service_account.Credentials.from_service_account_file(str(path), scopes=GCS_SCOPES)

    ################ AUTH ##################
    def _get_auth_header(self) -> dict:
        return {"Authorization": f"Bearer {self._credentials.token}"}

    async def _ensure_auth(self) -> None:
        """Mint a fresh access token when the current one is missing or expired.

        Raises:
            UpstreamAuthError: If Google rejects the service account.
            UpstreamServiceError: If the token endpoint cannot be reached.
        """
        if self._credentials.valid:
            return
        async with self._refresh_lock:
            # another request may have refreshed while we waited
            if self._credentials.valid:
                return
            self.logging.debug("Refreshing GCS access token")
            try:
                await asyncio.to_thread(self._credentials.refresh, self._auth_request)
            except RefreshError as e:
                self.logging.error("GCS token refresh was rejected: %s", e)
                raise UpstreamAuthError(f"gcs credentials were rejected: {e}") from e
            except GoogleAuthError as e:
                self.logging.error("GCS token refresh failed: %s", e)
                raise UpstreamServiceError(f"gcs token refresh failed: {e}") from e

    ################ ENDPOINTS ##################
    def _get_base_url(self) -> str:
        return self._base_url

    def _get_endpoint_healthcheck(self) -> str:
        return f"/storage/v1/b/{self._bucket}"

    def _get_endpoint_upload(self) -> str:
        return f"/upload/storage/v1/b/{self._bucket}/o"

    def _get_endpoint_object(self, object_name: str) -> str:
        return f"/storage/v1/b/{self._bucket}/o/{quote(object_name, safe='')}"

    ################ URLS ##################
    def get_public_url(self, object_name: str) -> str:
        return f"{PUBLIC_HOST}/{self._bucket}/{object_name}"

    def get_object_name(self, url: str) -> str | None:
        marker = f"{self._bucket}/"
        if marker not in url:
            return None
        return url.split(marker, 1)[1] or None

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_upload_file(
        self,
        content: bytes,
        filename: str,
        folder: str = "prompts",
        content_type: str | None = None,
    ) -> str:
        content_type = content_type or self.guess_content_type(filename)
        object_name = self.build_object_name(filename, folder, content_type)
        self.logging.info("Uploading %s (%d bytes) to bucket %s", object_name, len(content), self._bucket)
        await self.do_request(
            method="POST",
            endpoint=self._get_endpoint_upload(),
            params={"uploadType": "media", "name": object_name},
            content=content,
            headers={"Content-Type": content_type},
            raise_on_error=True,
        )
        return self.get_public_url(object_name)

    async def do_delete_file(self, url: str) -> None:
        object_name = self.get_object_name(url)
        if object_name is None:
            self.logging.warning("No object name found in URL: %s", url)
            return
        response = await self.do_request(method="DELETE", endpoint=self._get_endpoint_object(object_name))
        if response.status_code == 404:
            self.logging.warning("Object does not exist: %s", object_name)
            return
        self._raise_for_status(response, url)
        self.logging.info("Deleted object %s", object_name)
