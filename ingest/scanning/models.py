from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class ScanResult:
    """Outcome of a content scan.

    ``rejection`` names the rule that fired (``oversize``, ``invalid_header``
    or ``signature``) and is None for clean content.
    """

    clean: bool
    verdict: str
    scanned_at: datetime
    rejection: str | None = None
    threats: list[str] = field(default_factory=list)
