from dataclasses import dataclass

from ingest.database.models import LedgerTransaction


@dataclass(frozen=True)
class DuplicateMatch:
    existing: LedgerTransaction
    score: float
