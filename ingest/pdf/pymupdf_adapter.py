import pymupdf

from ingest.pdf.base import PAGE_SEPARATOR, BasePdfExtractor
from ingest.pdf.exceptions import PdfExtractionError
from ingest.pdf.metadata import PdfMetadata, clean_field, header_version, parse_pdf_date


class PyMuPdfAdapter(BasePdfExtractor):
    """Extracts text from PDF using PyMuPDF."""

    def extract(self, pdf_bytes: bytes) -> str:
        try:
            with pymupdf.open(stream=pdf_bytes, filetype="pdf") as doc:  # type: ignore[no-untyped-call]
                pages = [page.get_text().strip() for page in doc]
            return PAGE_SEPARATOR.join(pages).strip()
        except PdfExtractionError:
            raise
        except Exception as exc:
            raise PdfExtractionError(f"pymupdf extraction failed: {exc}") from exc

    def validate(self, pdf_bytes: bytes) -> bool:
        try:
            with pymupdf.open(stream=pdf_bytes, filetype="pdf") as doc:  # type: ignore[no-untyped-call]
                return doc.page_count > 0
        except Exception:
            return False

    def metadata(self, pdf_bytes: bytes) -> PdfMetadata:
        try:
            with pymupdf.open(stream=pdf_bytes, filetype="pdf") as doc:  # type: ignore[no-untyped-call]
                info = doc.metadata or {}
                page_count = doc.page_count
                is_encrypted = bool(doc.is_encrypted or info.get("encryption"))
        except Exception as exc:
            raise PdfExtractionError(f"pymupdf metadata failed: {exc}") from exc
        return PdfMetadata(
            page_count=page_count,
            is_encrypted=is_encrypted,
            file_size_bytes=len(pdf_bytes),
            version=header_version(pdf_bytes),
            title=clean_field(info.get("title")),
            author=clean_field(info.get("author")),
            subject=clean_field(info.get("subject")),
            creator=clean_field(info.get("creator")),
            creation_date=parse_pdf_date(info.get("creationDate")),
        )
