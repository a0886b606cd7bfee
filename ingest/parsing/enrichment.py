import re

from ingest.parsing.models import ExtractedTransaction

_FLAGS = re.IGNORECASE

_MERCHANT_PATTERNS = [
    re.compile(r"KARTENZAHLUNG\s+([^\d]+?)\s+\d{2}\.\d{2}", _FLAGS),
    re.compile(r"ELV\s+([^\d]+?)\s+\d{2}\.\d{2}", _FLAGS),
    re.compile(r"LASTSCHRIFT\s+(.+?)\s+(?:MANDATSREF|END-TO-END)", _FLAGS),
    re.compile(r"ÜBERWEISUNG\s+(.+?)\s*(?:VERWENDUNGSZWECK|IBAN|$)", _FLAGS),
    re.compile(r"GUTSCHRIFT\s+(.+?)\s*(?:\bVON\b|IBAN|$)", _FLAGS),
]

_REFERENCE_PATTERNS = [
    re.compile(r"MANDATSREF[:.\s]+(\w+)", _FLAGS),
    re.compile(r"END-TO-END-REF[:.\s]+(\w+)", _FLAGS),
    re.compile(r"KUNDENREF(?:ERENZ)?[:.\s]+(\w+)", _FLAGS),
    re.compile(r"REFERENZ[:.\s]+(\w+)", _FLAGS),
    re.compile(r"\bREF[:.\s]+(\w+)", _FLAGS),
]

_PAYMENT_METHODS = [
    ("KARTENZAHLUNG", "Kartenzahlung"),
    ("ELV", "Kartenzahlung"),
    ("LASTSCHRIFT", "Lastschrift"),
    ("DAUERAUFTRAG", "Dauerauftrag"),
    ("ÜBERWEISUNG", "Überweisung"),
    ("GUTSCHRIFT", "Gutschrift"),
]

_LOCATION = re.compile(
    r"KARTENZAHLUNG\s+[^\d]*\s+\d{2}\.\d{2}\s+\d{2}:\d{2}\s+(.+)$", _FLAGS
)

_BANKING_NOISE = re.compile(
    r"\b(?:KARTENZAHLUNG|LASTSCHRIFT|ÜBERWEISUNG|GUTSCHRIFT|DAUERAUFTRAG|ELV|FOLGENR\.)(?!\w)",
    _FLAGS,
)
_WHITESPACE = re.compile(r"\s+")


def clean_description(description: str) -> str:
    """Drop booking keywords and collapse whitespace."""
    cleaned = _BANKING_NOISE.sub(" ", description)
    return _WHITESPACE.sub(" ", cleaned).strip()


def enrich(transaction: ExtractedTransaction, raw_description: str) -> ExtractedTransaction:
    """Fill merchant, reference, payment method and location from the raw text."""
    transaction.merchant_name = _first_group(_MERCHANT_PATTERNS, raw_description)
    transaction.reference_number = _first_group(_REFERENCE_PATTERNS, raw_description)

    upper = raw_description.upper()
    for keyword, method in _PAYMENT_METHODS:
        if re.search(rf"\b{keyword}(?!\w)", upper):
            transaction.payment_method = method
            break

    location = _LOCATION.search(raw_description)
    if location:
        transaction.location = location.group(1).strip()
    return transaction


def _first_group(patterns: list[re.Pattern[str]], text: str) -> str | None:
    for pattern in patterns:
        match = pattern.search(text)
        if match:
            value = _WHITESPACE.sub(" ", match.group(1)).strip()
            if value:
                return value
    return None
