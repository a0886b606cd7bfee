from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal


class TransactionType:
    INCOME = "Income"
    EXPENSE = "Expense"

    ALL = frozenset({INCOME, EXPENSE})


@dataclass
class ExtractedTransaction:
    """A parsed statement line awaiting review.

    ``amount`` is always non-negative; the direction of money is carried by
    ``transaction_type``. ``id`` is stable for the same input text.
    """

    id: str
    transaction_date: date
    amount: Decimal
    description: str
    transaction_type: str
    booking_date: date | None = None
    merchant_name: str | None = None
    reference_number: str | None = None
    payment_method: str | None = None
    location: str | None = None
    tags: list[str] = field(default_factory=list)
    parse_confidence: float = 0.0
    suggested_category_id: int | None = None
    suggested_category_name: str | None = None
    is_duplicate: bool = False
    duplicate_transaction_id: int | None = None
    duplicate_reason: str | None = None
    confidence_score: float = 0.0
    is_selected: bool = True


@dataclass(frozen=True)
class StatementRow:
    """One statement line split into its fields, amount still signed."""

    transaction_date: date
    description: str
    signed_amount: Decimal
    booking_date: date | None = None


@dataclass(frozen=True)
class StatementInfo:
    bank_name: str
    currency: str = "EUR"
    account_number: str | None = None
    period_start: date | None = None
    period_end: date | None = None
    opening_balance: Decimal | None = None
    closing_balance: Decimal | None = None


@dataclass
class ParseResult:
    dialect: str
    transactions: list[ExtractedTransaction] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
