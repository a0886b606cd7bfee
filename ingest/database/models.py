from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal


@dataclass
class JobRecord:
    """Represents a row from the ingest_jobs table."""

    id: int
    uploaded_document_id: int
    status: str
    attempts: int
    reprocess: bool = False
    error_message: str | None = None
    locked_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class LedgerTransaction:
    """A committed ledger row as seen by the duplicate detector."""

    id: int
    user_id: int
    transaction_date: date
    amount: Decimal
    description: str
    transaction_type: str


@dataclass(frozen=True)
class NewLedgerTransaction:
    """Record handed to the ledger writer on import."""

    user_id: int
    account_id: int | None
    category_id: int
    transaction_date: date
    amount: Decimal
    description: str
    transaction_type: str
    merchant_name: str | None
    reference_number: str | None
    payment_method: str | None
    source_document_id: int
    source_candidate_id: str
