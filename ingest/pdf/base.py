from abc import ABC, abstractmethod

from ingest.pdf.metadata import PdfMetadata

PAGE_SEPARATOR = "\n\n"


class BasePdfExtractor(ABC):
    """Contract for all PDF text extraction adapters."""

    @abstractmethod
    def extract(self, pdf_bytes: bytes) -> str:
        """Extract plain text from PDF bytes.

        Pages are joined with a blank line. A document without a text layer
        yields an empty string.

        Raises:
            PdfExtractionError: if the document cannot be opened or read.
        """

    @abstractmethod
    def validate(self, pdf_bytes: bytes) -> bool:
        """Return True if the document opens and has at least one page.

        Never raises. A missing text layer does not make a document invalid.
        """

    @abstractmethod
    def metadata(self, pdf_bytes: bytes) -> PdfMetadata:
        """Read page count, encryption flag and document info.

        Raises:
            PdfExtractionError: if the document cannot be opened.
        """
