from ingest.parsing.amounts import is_candidate_line, parse_amount, parse_date
from ingest.parsing.base import BaseStatementDialect
from ingest.parsing.exceptions import LineParseError
from ingest.parsing.models import StatementRow


class DelimitedDialect(BaseStatementDialect):
    """Rows exported as ``booking;value;description;amount``.

    The value date column is optional. Descriptions may themselves contain
    the delimiter; everything between the dates and the last field is kept.
    """

    delimiter = ";"

    def is_candidate(self, line: str) -> bool:
        return self.delimiter in line and is_candidate_line(line)

    def parse_row(self, line: str) -> StatementRow:
        fields = [field.strip().strip('"') for field in line.split(self.delimiter)]
        while fields and not fields[-1]:
            fields.pop()
        if len(fields) < 3:
            raise LineParseError(f"expected at least 3 fields, got {len(fields)}")

        booking = parse_date(fields[0])
        rest = fields[1:-1]
        value = booking
        if rest and is_candidate_line(rest[0]) and len(rest[0]) <= 10:
            value = parse_date(rest[0])
            rest = rest[1:]
        description = " ".join(part for part in rest if part)
        if not description:
            raise LineParseError("empty description")
        return StatementRow(
            transaction_date=value,
            booking_date=booking,
            description=description,
            signed_amount=parse_amount(fields[-1]),
        )


class CommerzbankDialect(DelimitedDialect):
    name = "Commerzbank"
    aliases = ("commerzbank",)
    confidence = 0.85


class VolksbankDialect(DelimitedDialect):
    name = "Volksbank"
    aliases = ("volksbank", "vr bank", "vr-bank")
    confidence = 0.85


class RaiffeisenbankDialect(DelimitedDialect):
    name = "Raiffeisenbank"
    aliases = ("raiffeisenbank", "raiffeisen")
    confidence = 0.85
