import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass

from ingest.parsing.models import ParseResult, StatementInfo
from ingest.pdf.metadata import PdfMetadata
from ingest.processor.exceptions import IngestionFailure
from ingest.processor.models import UploadedDocument
from ingest.scanning.models import ScanResult


@dataclass(slots=True)
class PipelineContext:
    uploaded_document_id: int
    job_id: int
    run_id: uuid.UUID | None = None
    deadline: float | None = None
    document: UploadedDocument | None = None
    raw_bytes: bytes = b""
    scan_result: ScanResult | None = None
    pdf_metadata: PdfMetadata | None = None
    extracted_text: str = ""
    parse_result: ParseResult | None = None
    statement_info: StatementInfo | None = None
    duplicate_count: int = 0
    failure: IngestionFailure | None = None

    def require_document(self) -> UploadedDocument:
        if self.document is None:
            raise ValueError("PipelineContext.document must be set before this step")
        return self.document

    def require_run_id(self) -> uuid.UUID:
        if self.run_id is None:
            raise ValueError("PipelineContext.run_id must be set by the claim")
        return self.run_id


class PipelineStep(ABC):
    @abstractmethod
    def run(self, context: PipelineContext) -> PipelineContext:
        raise NotImplementedError
