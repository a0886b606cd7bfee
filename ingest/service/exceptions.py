class ServiceError(Exception):
    """Base exception for the ingestion service API."""


class UploadValidationError(ServiceError):
    """Upload rejected before anything was stored."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = errors


class InvalidStateError(ServiceError):
    """Operation not allowed in the document's current state or kind."""


class PreviewNotAvailableError(InvalidStateError):
    """Preview requested for a document that is not a processed statement."""
