import io

import pdfplumber

from ingest.pdf.base import PAGE_SEPARATOR, BasePdfExtractor
from ingest.pdf.exceptions import PdfExtractionError
from ingest.pdf.metadata import PdfMetadata, clean_field, header_version, parse_pdf_date


class PdfPlumberAdapter(BasePdfExtractor):
    """Extracts text from PDF using pdfplumber."""

    def extract(self, pdf_bytes: bytes) -> str:
        try:
            with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
                pages = [(page.extract_text() or "").strip() for page in pdf.pages]
            return PAGE_SEPARATOR.join(pages).strip()
        except PdfExtractionError:
            raise
        except Exception as exc:
            raise PdfExtractionError(f"pdfplumber extraction failed: {exc}") from exc

    def validate(self, pdf_bytes: bytes) -> bool:
        try:
            with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
                return len(pdf.pages) > 0
        except Exception:
            return False

    def metadata(self, pdf_bytes: bytes) -> PdfMetadata:
        try:
            with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
                info = pdf.metadata or {}
                page_count = len(pdf.pages)
                is_encrypted = bool(getattr(pdf.doc, "encryption", None))
        except Exception as exc:
            raise PdfExtractionError(f"pdfplumber metadata failed: {exc}") from exc
        return PdfMetadata(
            page_count=page_count,
            is_encrypted=is_encrypted,
            file_size_bytes=len(pdf_bytes),
            version=header_version(pdf_bytes),
            title=clean_field(info.get("Title")),
            author=clean_field(info.get("Author")),
            subject=clean_field(info.get("Subject")),
            creator=clean_field(info.get("Creator")),
            creation_date=parse_pdf_date(info.get("CreationDate")),
        )
