"""Round-trips the candidate list through the extracted_data JSONB column."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from ingest.parsing.exceptions import PayloadValidationError
from ingest.parsing.models import ExtractedTransaction, StatementInfo, TransactionType

PAYLOAD_VERSION = 1


@dataclass
class StatementPayload:
    dialect: str
    transactions: list[ExtractedTransaction] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def to_payload(payload: StatementPayload) -> dict[str, Any]:
    return {
        "version": PAYLOAD_VERSION,
        "dialect": payload.dialect,
        "transactions": [transaction_to_dict(t) for t in payload.transactions],
        "warnings": list(payload.warnings),
    }


def transaction_to_dict(transaction: ExtractedTransaction) -> dict[str, Any]:
    return {
        "id": transaction.id,
        "transaction_date": transaction.transaction_date.isoformat(),
        "booking_date": _iso_or_none(transaction.booking_date),
        "amount": str(transaction.amount),
        "description": transaction.description,
        "transaction_type": transaction.transaction_type,
        "merchant_name": transaction.merchant_name,
        "reference_number": transaction.reference_number,
        "payment_method": transaction.payment_method,
        "location": transaction.location,
        "tags": list(transaction.tags),
        "parse_confidence": transaction.parse_confidence,
        "suggested_category_id": transaction.suggested_category_id,
        "suggested_category_name": transaction.suggested_category_name,
        "is_duplicate": transaction.is_duplicate,
        "duplicate_transaction_id": transaction.duplicate_transaction_id,
        "duplicate_reason": transaction.duplicate_reason,
        "confidence_score": transaction.confidence_score,
        "is_selected": transaction.is_selected,
    }


def from_payload(data: Any) -> StatementPayload:
    """Validate a stored payload and rebuild the candidates.

    Raises:
        PayloadValidationError: on any structural problem.
    """
    if not isinstance(data, dict):
        raise PayloadValidationError("payload must be an object")
    for key in ("dialect", "transactions", "warnings"):
        if key not in data:
            raise PayloadValidationError(f"Missing required top-level field: {key}")
    if not isinstance(data["transactions"], list):
        raise PayloadValidationError("'transactions' must be a list")
    if not isinstance(data["warnings"], list):
        raise PayloadValidationError("'warnings' must be a list")

    transactions: list[ExtractedTransaction] = []
    seen_ids: set[str] = set()
    for index, raw in enumerate(data["transactions"]):
        transaction = _build_transaction(raw, index)
        if transaction.id in seen_ids:
            raise PayloadValidationError(f"Duplicate transaction id: {transaction.id}")
        seen_ids.add(transaction.id)
        transactions.append(transaction)
    return StatementPayload(
        dialect=str(data["dialect"]),
        transactions=transactions,
        warnings=[str(w) for w in data["warnings"]],
    )


def statement_info_to_dict(info: StatementInfo) -> dict[str, Any]:
    return {
        "bank_name": info.bank_name,
        "currency": info.currency,
        "account_number": info.account_number,
        "period_start": _iso_or_none(info.period_start),
        "period_end": _iso_or_none(info.period_end),
        "opening_balance": _str_or_none(info.opening_balance),
        "closing_balance": _str_or_none(info.closing_balance),
    }


def _build_transaction(raw: Any, index: int) -> ExtractedTransaction:
    if not isinstance(raw, dict):
        raise PayloadValidationError(f"transactions[{index}] must be an object")
    tx_id = raw.get("id")
    if not tx_id or not isinstance(tx_id, str):
        raise PayloadValidationError(f"transactions[{index}].id must be a non-empty string")
    tx_type = raw.get("transaction_type")
    if tx_type not in TransactionType.ALL:
        raise PayloadValidationError(
            f"transactions[{index}].transaction_type must be one of {sorted(TransactionType.ALL)}"
        )
    amount = _decimal(raw.get("amount"), f"transactions[{index}].amount")
    if amount < 0:
        raise PayloadValidationError(f"transactions[{index}].amount must not be negative")
    transaction_date = _date(raw.get("transaction_date"), f"transactions[{index}].transaction_date")
    booking_raw = raw.get("booking_date")
    booking_date = (
        _date(booking_raw, f"transactions[{index}].booking_date") if booking_raw else None
    )
    return ExtractedTransaction(
        id=tx_id,
        transaction_date=transaction_date,
        booking_date=booking_date,
        amount=amount,
        description=str(raw.get("description") or ""),
        transaction_type=tx_type,
        merchant_name=raw.get("merchant_name"),
        reference_number=raw.get("reference_number"),
        payment_method=raw.get("payment_method"),
        location=raw.get("location"),
        tags=[str(t) for t in raw.get("tags") or []],
        parse_confidence=float(raw.get("parse_confidence") or 0.0),
        suggested_category_id=raw.get("suggested_category_id"),
        suggested_category_name=raw.get("suggested_category_name"),
        is_duplicate=bool(raw.get("is_duplicate", False)),
        duplicate_transaction_id=raw.get("duplicate_transaction_id"),
        duplicate_reason=raw.get("duplicate_reason"),
        confidence_score=float(raw.get("confidence_score") or 0.0),
        is_selected=bool(raw.get("is_selected", True)),
    )


def _decimal(raw: Any, name: str) -> Decimal:
    if isinstance(raw, bool) or not isinstance(raw, (str, int)):
        raise PayloadValidationError(f"{name} must be a decimal string")
    try:
        return Decimal(str(raw))
    except InvalidOperation as exc:
        raise PayloadValidationError(f"{name} must be a decimal string") from exc


def _date(raw: Any, name: str) -> date:
    if not isinstance(raw, str):
        raise PayloadValidationError(f"{name} must be an ISO date string")
    try:
        return date.fromisoformat(raw)
    except ValueError as exc:
        raise PayloadValidationError(f"{name} must be an ISO date string") from exc


def _iso_or_none(value: date | None) -> str | None:
    return value.isoformat() if value is not None else None


def _str_or_none(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None
