from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from ingest.parsing.models import ExtractedTransaction
from ingest.processor.models import DocumentKind, LastError


@dataclass(frozen=True)
class UploadMetadata:
    user_id: int
    filename: str
    kind: str = DocumentKind.BANK_STATEMENT
    content_type: str = "application/pdf"
    account_id: int | None = None
    transaction_id: int | None = None
    bank_name: str | None = None
    period_start: date | None = None
    period_end: date | None = None
    description: str | None = None
    tags: str | None = None


@dataclass(frozen=True)
class ImportOptions:
    skip_duplicates: bool = True
    default_category_id: int | None = None
    auto_categorize: bool = True
    category_overrides: dict[str, int] = field(default_factory=dict)


@dataclass
class ImportResult:
    total: int = 0
    imported: int = 0
    skipped_duplicates: int = 0
    failed: int = 0
    imported_amount: Decimal = Decimal("0.00")
    imported_ids: list[int] = field(default_factory=list)
    failed_ids: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return self.failed > 0


@dataclass(frozen=True)
class PreviewTotals:
    total_income: Decimal
    total_expenses: Decimal
    net_amount: Decimal


@dataclass(frozen=True)
class StatementPreview:
    document_id: int
    filename: str
    bank_name: str | None
    period_start: date | None
    period_end: date | None
    transactions: list[ExtractedTransaction]
    totals: PreviewTotals
    duplicate_count: int
    new_count: int
    warnings: list[str] = field(default_factory=list)
    statement_info: dict[str, Any] | None = None

    @property
    def total_count(self) -> int:
        return len(self.transactions)


@dataclass(frozen=True)
class ProcessingStatus:
    document_id: int
    status: str
    message: str | None
    processed_at: datetime | None = None
    transaction_count: int | None = None
    last_error: LastError | None = None
    scan_verdict: str | None = None
    extracted_text: str | None = None
    pdf_metadata: dict[str, Any] | None = None
