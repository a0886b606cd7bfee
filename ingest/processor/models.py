from dataclasses import dataclass
from datetime import date, datetime


class DocumentStatus:
    """Lifecycle states stored in uploaded_documents.status."""

    UPLOADED = "Uploaded"
    PROCESSING = "Processing"
    PROCESSED = "Processed"
    FAILED = "Failed"
    VIRUS_DETECTED = "VirusDetected"
    IMPORTED = "Imported"

    ALL = frozenset({UPLOADED, PROCESSING, PROCESSED, FAILED, VIRUS_DETECTED, IMPORTED})
    TERMINAL = frozenset({PROCESSED, FAILED, VIRUS_DETECTED, IMPORTED})


class DocumentKind:
    RECEIPT = "Receipt"
    BANK_STATEMENT = "BankStatement"
    DOCUMENT = "Document"
    INVOICE = "Invoice"
    CONTRACT = "Contract"

    ALL = frozenset({RECEIPT, BANK_STATEMENT, DOCUMENT, INVOICE, CONTRACT})


@dataclass(frozen=True)
class LastError:
    """Structured failure detail; processing_message stays diagnostic only."""

    kind: str
    detail: str


@dataclass(frozen=True)
class UploadedDocument:
    """Domain model for a row of uploaded_documents."""

    id: int
    user_id: int
    kind: str
    status: str
    storage_disk: str
    storage_path: str
    original_filename: str
    content_type: str
    file_size_bytes: int
    account_id: int | None = None
    transaction_id: int | None = None
    bank_name: str | None = None
    period_start: date | None = None
    period_end: date | None = None
    description: str | None = None
    tags: str | None = None
    extracted_text: str | None = None
    extracted_data: dict[str, object] | None = None
    statement_info: dict[str, object] | None = None
    pdf_metadata: dict[str, object] | None = None
    processing_message: str | None = None
    last_error: LastError | None = None
    scan_verdict: str | None = None
    scanned_at: datetime | None = None
    is_deleted: bool = False
    processed_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_statement(self) -> bool:
        return self.kind == DocumentKind.BANK_STATEMENT
