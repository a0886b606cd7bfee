import re

from ingest.parsing.amounts import AMOUNT, parse_amount, parse_date
from ingest.parsing.base import BaseStatementDialect
from ingest.parsing.exceptions import LineParseError
from ingest.parsing.models import StatementRow

_TRAILING_AMOUNT = re.compile(rf"(?:(?P<sign>[+-])\s+)?(?P<amount>{AMOUNT})\s*(?P<marker>[SH])?$")


class FixedColumnDialect(BaseStatementDialect):
    """Rows with the two dates in fixed-width columns.

    Columns: booking date ``[0:10]``, value date ``[11:21]``, then the
    description and a right-aligned amount. The amount's direction is either
    a detached ``+``/``-`` or a trailing ``S`` (Soll, debit) / ``H`` (Haben,
    credit) marker.
    """

    booking_columns = (0, 10)
    value_columns = (11, 21)
    description_start = 22

    def parse_row(self, line: str) -> StatementRow:
        if len(line) <= self.description_start:
            raise LineParseError("row shorter than the column layout")
        booking = parse_date(line[slice(*self.booking_columns)])
        value = parse_date(line[slice(*self.value_columns)])

        rest = line[self.description_start :].rstrip()
        match = _TRAILING_AMOUNT.search(rest)
        if match is None:
            raise LineParseError("no amount column")
        description = rest[: match.start()].strip()
        if not description:
            raise LineParseError("empty description")

        amount = parse_amount(match.group("amount"))
        if match.group("sign") == "-" or match.group("marker") == "S":
            amount = -abs(amount)
        elif match.group("sign") == "+" or match.group("marker") == "H":
            amount = abs(amount)
        return StatementRow(
            transaction_date=value,
            booking_date=booking,
            description=description,
            signed_amount=amount,
        )


class PostbankDialect(FixedColumnDialect):
    name = "Postbank"
    aliases = ("postbank",)
    confidence = 0.85
