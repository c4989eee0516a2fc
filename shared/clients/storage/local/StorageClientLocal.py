import asyncio
import os
from pathlib import Path

from shared.clients.storage.StorageClientInterface import StorageClientInterface
from shared.exceptions.errors import UpstreamServiceError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class StorageClientLocal(StorageClientInterface):
    """Stores files on the local disk; the API mounts the directory as static files."""

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        directory = self.get_config_val("DIRECTORY", default="uploads", val_type="string")
        self._directory = helper_config.resolve_path(directory).resolve()
        self._public_url = self.get_config_val("PUBLIC_URL", default="/files", val_type="string").rstrip("/")

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Local"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="DIRECTORY", val_type="string", default="uploads"),
            EnvConfig(env_key="PUBLIC_URL", val_type="string", default="/files"),
        ]

    def get_directory(self) -> Path:
        return self._directory

    def get_mount_path(self) -> str | None:
        """Path the API should serve the directory under, None for absolute public URLs."""
        return self._public_url if self._public_url.startswith("/") else None

    ################ URLS ##################
    def get_public_url(self, object_name: str) -> str:
        return f"{self._public_url}/{object_name}"

    def get_object_name(self, url: str) -> str | None:
        prefix = f"{self._public_url}/"
        if not url.startswith(prefix):
            return None
        return url[len(prefix):] or None

    def _resolve(self, object_name: str) -> Path | None:
        path = (self._directory / object_name).resolve()
        if not path.is_relative_to(self._directory):
            return None
        return path

    ##########################################
    ############### LIFECYCLE ################
    ##########################################

    async def boot(self) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        self.logging.info("Local storage ready at %s", self._directory)

    async def close(self) -> None:
        pass

    async def do_healthcheck(self) -> bool:
        return self._directory.is_dir() and os.access(self._directory, os.W_OK)

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
        object_name = self.build_object_name(filename, folder, content_type or self.guess_content_type(filename))
        path = self._resolve(object_name)
        if path is None:
            raise UpstreamServiceError(f"Refusing to write outside the storage directory: {object_name}")

        def _write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(content)

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            self.logging.error("Could not write %s: %s", path, e)
            raise UpstreamServiceError(f"Could not store {object_name}: {e}") from e
        self.logging.info("Stored %s (%d bytes)", object_name, len(content))
        return self.get_public_url(object_name)

    async def do_delete_file(self, url: str) -> None:
        object_name = self.get_object_name(url)
        path = self._resolve(object_name) if object_name else None
        if path is None:
            self.logging.warning("No object name found in URL: %s", url)
            return
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            self.logging.warning("File does not exist: %s", object_name)
            return
        except OSError as e:
            self.logging.error("Could not delete %s: %s", path, e)
            raise UpstreamServiceError(f"Could not delete {object_name}: {e}") from e
        self.logging.info("Deleted %s", object_name)
