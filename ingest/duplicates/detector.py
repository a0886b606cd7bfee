from collections.abc import Sequence
from datetime import date, timedelta
from decimal import Decimal
from typing import Protocol

from ingest.config.settings import Settings
from ingest.database.models import LedgerTransaction
from ingest.duplicates.models import DuplicateMatch
from ingest.logging.logger import Log
from ingest.parsing.models import ExtractedTransaction

AMOUNT_WEIGHT = 0.40
DATE_WEIGHT = 0.30
DESCRIPTION_WEIGHT = 0.25
TYPE_WEIGHT = 0.05
DATE_DECAY_DAYS = 7


class LedgerReader(Protocol):
    def transactions_for_user(
        self,
        user_id: int,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[LedgerTransaction]: ...


def description_similarity(left: str, right: str) -> float:
    """Jaccard similarity of lower-cased whitespace tokens."""
    a, b = left.strip().lower(), right.strip().lower()
    if not a or not b:
        return 0.0
    if a == b:
        return 1.0
    tokens_a, tokens_b = set(a.split()), set(b.split())
    return len(tokens_a & tokens_b) / len(tokens_a | tokens_b)


class DuplicateDetector:
    """Scores parsed candidates against the user's existing ledger.

    Only ledger rows inside the date window and the amount tolerance are
    scored at all; anything else is 0 without looking at descriptions.
    Amounts are compared by absolute value because the ledger keeps the
    direction in the transaction type.
    """

    def __init__(
        self,
        ledger_reader: LedgerReader,
        window_days: int = 3,
        amount_tolerance: Decimal = Decimal("0.01"),
        threshold: float = 0.8,
    ) -> None:
        self._ledger_reader = ledger_reader
        self._window_days = window_days
        self._amount_tolerance = amount_tolerance
        self._threshold = threshold

    def score(self, existing: LedgerTransaction, candidate: ExtractedTransaction) -> float:
        delta_days = abs((existing.transaction_date - candidate.transaction_date).days)
        if delta_days > self._window_days:
            return 0.0
        candidate_amount = abs(candidate.amount)
        delta_amount = abs(abs(existing.amount) - candidate_amount)
        if delta_amount > self._amount_tolerance:
            return 0.0

        if candidate_amount > 0:
            amount_similarity = max(0.0, 1.0 - float(delta_amount / candidate_amount))
        else:
            amount_similarity = 1.0 if delta_amount == 0 else 0.0
        date_similarity = max(0.0, 1.0 - delta_days / DATE_DECAY_DAYS)
        text_similarity = description_similarity(existing.description, candidate.description)
        type_similarity = 1.0 if existing.transaction_type == candidate.transaction_type else 0.0

        total = (
            AMOUNT_WEIGHT * amount_similarity
            + DATE_WEIGHT * date_similarity
            + DESCRIPTION_WEIGHT * text_similarity
            + TYPE_WEIGHT * type_similarity
        )
        return min(1.0, round(total, 6))

    def find_duplicates(
        self,
        user_id: int,
        candidate: ExtractedTransaction,
        ledger: Sequence[LedgerTransaction] | None = None,
    ) -> list[DuplicateMatch]:
        """Ledger rows scoring at or above the threshold, best first.

        Equal scores are ordered by the earlier ledger date, then ledger id.
        """
        if ledger is None:
            ledger = self._ledger_reader.transactions_for_user(
                user_id, *self._window(candidate.transaction_date, candidate.transaction_date)
            )
        matches = [
            DuplicateMatch(existing=existing, score=score)
            for existing in ledger
            if (score := self.score(existing, candidate)) >= self._threshold
        ]
        matches.sort(key=lambda m: (-m.score, m.existing.transaction_date, m.existing.id))
        return matches

    def flag(self, user_id: int, candidates: list[ExtractedTransaction]) -> int:
        """Mark probable duplicates in place and return how many were flagged.

        The ledger is read once for the whole batch.
        """
        if not candidates:
            return 0
        dates = [c.transaction_date for c in candidates]
        ledger = self._ledger_reader.transactions_for_user(
            user_id, *self._window(min(dates), max(dates))
        )

        flagged = 0
        for candidate in candidates:
            matches = self.find_duplicates(user_id, candidate, ledger)
            if not matches:
                candidate.is_duplicate = False
                candidate.duplicate_transaction_id = None
                candidate.duplicate_reason = None
                candidate.confidence_score = 0.0
                continue
            best = matches[0]
            candidate.is_duplicate = True
            candidate.duplicate_transaction_id = best.existing.id
            candidate.duplicate_reason = (
                "Possible duplicate of transaction from "
                f"{best.existing.transaction_date:%d.%m.%Y}"
            )
            candidate.confidence_score = best.score
            candidate.is_selected = False
            flagged += 1

        Log.info(
            f"Duplicate check for user {user_id}: {flagged} of {len(candidates)} "
            f"candidates flagged against {len(ledger)} ledger rows"
        )
        return flagged

    def _window(self, first: date, last: date) -> tuple[date, date]:
        span = timedelta(days=self._window_days)
        return first - span, last + span


def build_duplicate_detector(settings: Settings, ledger_reader: LedgerReader) -> DuplicateDetector:
    return DuplicateDetector(
        ledger_reader,
        window_days=settings.duplicate_window_days,
        amount_tolerance=Decimal(str(settings.duplicate_amount_tolerance)),
        threshold=settings.duplicate_threshold,
    )
