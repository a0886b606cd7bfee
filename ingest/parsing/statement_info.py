import re
from datetime import date
from decimal import Decimal

from ingest.parsing.amounts import AMOUNT, GERMAN_DATE, parse_amount, parse_date
from ingest.parsing.exceptions import LineParseError
from ingest.parsing.models import StatementInfo

_ACCOUNT = re.compile(r"Konto(?:nummer)?:?[ \t]*(\d+(?:[ \t]\d+)*)", re.IGNORECASE)
_IBAN = re.compile(r"IBAN:?\s*(DE\d{2}(?:\s?\d{4}){4}\s?\d{2})", re.IGNORECASE)
_PERIOD = re.compile(
    rf"(?:vom|Zeitraum):?\s*({GERMAN_DATE})\s*(?:bis|-)\s*({GERMAN_DATE})", re.IGNORECASE
)
_OPENING = re.compile(rf"(?:Alter\s+Kontostand|Anfangssaldo)[^\n]*?({AMOUNT})", re.IGNORECASE)
_CLOSING = re.compile(rf"(?:Neuer\s+Kontostand|Endsaldo)[^\n]*?({AMOUNT})", re.IGNORECASE)


def extract_statement_info(text: str, bank_name: str) -> StatementInfo:
    """Pull account number, period and balances out of the statement header.

    Every field is optional; nothing here fails the parse.
    """
    period_start, period_end = _period(text)
    return StatementInfo(
        bank_name=bank_name,
        account_number=_account(text),
        period_start=period_start,
        period_end=period_end,
        opening_balance=_balance(_OPENING, text),
        closing_balance=_balance(_CLOSING, text),
    )


def _account(text: str) -> str | None:
    match = _ACCOUNT.search(text) or _IBAN.search(text)
    if match is None:
        return None
    return re.sub(r"\s", "", match.group(1))


def _period(text: str) -> tuple[date | None, date | None]:
    match = _PERIOD.search(text)
    if match is None:
        return None, None
    try:
        return parse_date(match.group(1)), parse_date(match.group(2))
    except LineParseError:
        return None, None


def _balance(pattern: re.Pattern[str], text: str) -> Decimal | None:
    match = pattern.search(text)
    if match is None:
        return None
    try:
        return parse_amount(match.group(1))
    except LineParseError:
        return None
