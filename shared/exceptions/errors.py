"""Error taxonomy shared by the stores, the backend clients and the API layer.

The API maps each class onto a status code (see server/api/api_app.py);
nothing below knows about HTTP.
"""


class AutoStockError(Exception):
    """Base class of all errors raised on purpose by this service."""

    def __init__(self, message: str, details: dict | list | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(AutoStockError):
    """Malformed or missing input. Never retried."""


class NotFound(AutoStockError):
    """The requested id does not resolve to an existing document."""


class Unauthorized(AutoStockError):
    """The resolved caller does not own the requested document."""


class StorageUnavailable(AutoStockError):
    """The document store call failed or timed out."""


class UpstreamServiceError(AutoStockError):
    """The description-generation or blob-storage backend failed."""


class UpstreamAuthError(UpstreamServiceError):
    """The backend rejected our credentials."""


class UpstreamRateLimitError(UpstreamServiceError):
    """The backend throttled the request."""


class UpstreamInputError(UpstreamServiceError):
    """The backend refused the payload (oversized or malformed image)."""
