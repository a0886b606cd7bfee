from ingest.config.settings import Settings
from ingest.logging.logger import Log
from ingest.pdf.base import BasePdfExtractor
from ingest.pdf.exceptions import PdfExtractionError
from ingest.pdf.metadata import PdfMetadata
from ingest.pdf.pdfplumber_adapter import PdfPlumberAdapter
from ingest.pdf.pymupdf_adapter import PyMuPdfAdapter

ENGINES: dict[str, type[BasePdfExtractor]] = {
    "pdfplumber": PdfPlumberAdapter,
    "pymupdf": PyMuPdfAdapter,
}


class FallbackPdfExtractor(BasePdfExtractor):
    """Tries a second engine when the first one fails on a file.

    Bank exports differ in how they embed fonts, so a statement one
    library reads as empty or broken is often readable by the other.
    The fallback's answer is used only when the primary raised or found
    no text at all.
    """

    def __init__(self, primary: BasePdfExtractor, fallback: BasePdfExtractor) -> None:
        self._primary = primary
        self._fallback = fallback

    def validate(self, pdf_bytes: bytes) -> bool:
        return self._primary.validate(pdf_bytes) or self._fallback.validate(pdf_bytes)

    def extract(self, pdf_bytes: bytes) -> str:
        try:
            text = self._primary.extract(pdf_bytes)
        except PdfExtractionError as exc:
            Log.warning(f"{type(self._primary).__name__} failed ({exc}); trying fallback engine")
            return self._fallback.extract(pdf_bytes)
        if text.strip():
            return text
        try:
            fallback_text = self._fallback.extract(pdf_bytes)
        except PdfExtractionError:
            return text
        if fallback_text.strip():
            Log.info(f"{type(self._fallback).__name__} found text the primary engine missed")
            return fallback_text
        return text

    def metadata(self, pdf_bytes: bytes) -> PdfMetadata:
        try:
            return self._primary.metadata(pdf_bytes)
        except PdfExtractionError:
            return self._fallback.metadata(pdf_bytes)


def _engine(name: str) -> BasePdfExtractor:
    adapter_cls = ENGINES.get(name.lower())
    if adapter_cls is None:
        raise ValueError(f"Unknown PDF engine '{name}'. Choose from: {list(ENGINES)}")
    return adapter_cls()


def build_pdf_extractor(settings: Settings) -> BasePdfExtractor:
    """The configured engine, wrapped with the fallback engine when one is set."""
    primary = _engine(settings.pdf_engine)
    fallback_name = settings.pdf_fallback_engine.strip()
    if not fallback_name or fallback_name.lower() == settings.pdf_engine.lower():
        return primary
    return FallbackPdfExtractor(primary, _engine(fallback_name))
