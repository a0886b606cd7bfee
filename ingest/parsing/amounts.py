"""Date and amount normalization for German statement text."""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from ingest.parsing.exceptions import LineParseError

CENT = Decimal("0.01")

GERMAN_DATE = r"\d{2}\.\d{2}\.\d{4}"
ISO_DATE = r"\d{4}-\d{2}-\d{2}"
ANY_DATE = rf"(?:{GERMAN_DATE}|{ISO_DATE})"
# 1.234,56  1234,56  -49,99  49,99-
AMOUNT = r"[+-]?(?:\d{1,3}(?:\.\d{3})+|\d+),\d{2}-?"

LEADING_DATE = re.compile(rf"^{ANY_DATE}\b")


def parse_date(raw: str) -> date:
    """Parse ``dd.mm.yyyy`` or ``yyyy-mm-dd``.

    Raises:
        LineParseError: on an unknown format or an impossible calendar date.
    """
    value = raw.strip()
    for fmt in ("%d.%m.%Y", "%Y-%m-%d"):
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    raise LineParseError(f"invalid date '{raw}'")


def parse_amount(raw: str) -> Decimal:
    """Parse a German formatted amount into a signed Decimal with two places.

    A trailing minus (``49,99-``) is treated like a leading one.
    """
    value = raw.strip().replace(" ", "").replace("€", "")
    negative = value.startswith("-") or value.endswith("-")
    value = value.strip("+-")
    if not re.fullmatch(r"(?:\d{1,3}(?:\.\d{3})+|\d+),\d{2}", value):
        raise LineParseError(f"invalid amount '{raw}'")
    try:
        amount = Decimal(value.replace(".", "").replace(",", "."))
    except InvalidOperation as exc:
        raise LineParseError(f"invalid amount '{raw}'") from exc
    amount = amount.quantize(CENT)
    return -amount if negative else amount


def is_candidate_line(line: str) -> bool:
    """Statement rows start with a date; everything else is layout noise."""
    return LEADING_DATE.match(line) is not None
