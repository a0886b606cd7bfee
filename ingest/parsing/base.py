import hashlib
from abc import ABC, abstractmethod

from ingest.logging.logger import Log
from ingest.parsing.amounts import is_candidate_line
from ingest.parsing.enrichment import clean_description, enrich
from ingest.parsing.exceptions import LineParseError
from ingest.parsing.models import ExtractedTransaction, ParseResult, StatementRow, TransactionType


def candidate_id(line_number: int, line: str) -> str:
    """Stable id for a statement row: line position plus a digest of its text."""
    digest = hashlib.sha256(line.encode("utf-8")).hexdigest()[:10]
    return f"{line_number:04d}-{digest}"


class BaseStatementDialect(ABC):
    """One bank's statement layout.

    Subclasses only split a single row into fields; iteration, warnings,
    sign normalization and enrichment are shared.
    """

    name: str = ""
    aliases: tuple[str, ...] = ()
    confidence: float = 0.8

    @abstractmethod
    def parse_row(self, line: str) -> StatementRow:
        """Split one candidate line into fields.

        Raises:
            LineParseError: if the line does not fit this layout.
        """

    def is_candidate(self, line: str) -> bool:
        return is_candidate_line(line)

    def parse(self, text: str) -> ParseResult:
        result = ParseResult(dialect=self.name)
        for line_number, raw_line in enumerate(text.splitlines(), start=1):
            line = raw_line.strip()
            if not line or not self.is_candidate(line):
                continue
            try:
                row = self.parse_row(line)
            except LineParseError as exc:
                warning = f"Skipped line {line_number}: {exc}"
                result.warnings.append(warning)
                Log.warning(f"{self.name} parser: {warning}")
                continue
            result.transactions.append(self._to_transaction(line_number, line, row))
        return result

    def _to_transaction(
        self, line_number: int, line: str, row: StatementRow
    ) -> ExtractedTransaction:
        transaction = ExtractedTransaction(
            id=candidate_id(line_number, line),
            transaction_date=row.transaction_date,
            booking_date=row.booking_date or row.transaction_date,
            amount=abs(row.signed_amount),
            description=clean_description(row.description),
            transaction_type=(
                TransactionType.EXPENSE if row.signed_amount < 0 else TransactionType.INCOME
            ),
            parse_confidence=self.confidence,
        )
        return enrich(transaction, row.description)
