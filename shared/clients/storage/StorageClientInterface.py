import mimetypes
import uuid
from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig


class StorageClientInterface(ClientInterface):
    """Blob storage for uploaded and processed images.

    Objects are addressed by "<folder>/<uuid4>.<ext>" and exposed through a
    public URL; the store records only that URL.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        return "storage"

    ##########################################
    ################# OTHER ##################
    ##########################################

    @staticmethod
    def build_object_name(filename: str, folder: str, content_type: str | None = None) -> str:
        """Return a fresh, collision-free object name keeping the file extension.

        Falls back to an extension derived from content_type, then to "bin".
        """
        extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
        if not extension and content_type:
            guessed = mimetypes.guess_extension(content_type) or ""
            extension = guessed.lstrip(".")
        folder = folder.strip("/")
        name = f"{uuid.uuid4()}.{extension or 'bin'}"
        return f"{folder}/{name}" if folder else name

    @staticmethod
    def guess_content_type(filename: str, default: str = "application/octet-stream") -> str:
        content_type, _ = mimetypes.guess_type(filename)
        return content_type or default

    @abstractmethod
    def get_public_url(self, object_name: str) -> str:
        """Returns the URL under which the object is publicly readable."""
        pass

    @abstractmethod
    def get_object_name(self, url: str) -> str | None:
        """Returns the object name for a public URL, None if the URL is not ours."""
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    @abstractmethod
    async def do_upload_file(
        self,
        content: bytes,
        filename: str,
        folder: str = "prompts",
        content_type: str | None = None,
    ) -> str:
        """Store the bytes under a new object name.

        Args:
            content (bytes): The file body.
            filename (str): Original file name, only its extension is kept.
            folder (str): Folder (object name prefix) to store under.
            content_type (str | None): Mime type; guessed from filename if None.

        Returns:
            str: The public URL of the stored object.

        Raises:
            UpstreamServiceError: If the object could not be stored.
        """
        pass

    @abstractmethod
    async def do_delete_file(self, url: str) -> None:
        """Remove the object behind a public URL.

        URLs that do not belong to this storage or point at missing objects
        are ignored with a warning.

        Raises:
            UpstreamServiceError: If the backend failed to delete an existing object.
        """
        pass
