class ProcessorError(Exception):
    """Base exception for all processor-related errors."""


class DocumentNotFoundError(ProcessorError):
    """Raised when a document cannot be found in the database."""


class UnsupportedStorageDiskError(ProcessorError):
    """Raised when a document uses an unsupported storage disk type."""


class BlobNotFoundError(ProcessorError):
    """Raised when the stored bytes for a document are missing."""


class IngestionFailure(ProcessorError):
    """A stage failure that ends the run with a terminal status.

    ``message`` is safe to show to the uploader; ``str(exc)`` is the
    diagnostic detail and goes to logs and ``error_detail``.
    """

    kind = "Unexpected"
    message = "Unexpected processing error"

    def __init__(self, detail: str, message: str | None = None) -> None:
        super().__init__(detail)
        if message is not None:
            self.message = message


class ScanRejectedError(IngestionFailure):
    kind = "ScanRejected"
    message = "File rejected by security scan"


class InvalidContentError(IngestionFailure):
    kind = "InvalidContent"
    message = "File is not a valid PDF document"


class ExtractionError(IngestionFailure):
    kind = "ExtractionFailure"
    message = "Could not read text from this document"


class StatementParseError(IngestionFailure):
    kind = "ParseFailure"
    message = "No transactions could be read from this statement"


class ProcessingTimeoutError(IngestionFailure):
    kind = "Timeout"
    message = "Processing timed out"


class RunAbortedError(ProcessorError):
    """The document left ``Processing`` while a run was still working on it."""
