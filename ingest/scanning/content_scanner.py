from datetime import datetime, timezone

from ingest.config.settings import Settings
from ingest.logging.logger import Log
from ingest.scanning.base import BaseContentScanner
from ingest.scanning.models import ScanResult

REJECT_OVERSIZE = "oversize"
REJECT_INVALID_HEADER = "invalid_header"
REJECT_SIGNATURE = "signature"


class SignatureScanner(BaseContentScanner):
    """Size limit, magic header and block-list signature checks.

    Checks run in that order and stop at the first failing rule, so an
    oversized payload is never searched for signatures.
    """

    def __init__(
        self,
        max_bytes: int,
        magic_header: bytes,
        blocklist: list[str],
    ) -> None:
        self._max_bytes = max_bytes
        self._magic_header = magic_header
        self._blocklist = [pattern.lower().encode("latin-1") for pattern in blocklist]

    def scan(self, content: bytes) -> ScanResult:
        now = datetime.now(timezone.utc)
        if len(content) > self._max_bytes:
            return self._reject(
                now, REJECT_OVERSIZE, [f"File too large ({len(content)} bytes)"]
            )
        if not content.startswith(self._magic_header):
            return self._reject(now, REJECT_INVALID_HEADER, ["Invalid PDF format"])

        lowered = content.lower()
        threats = [
            f"Suspicious pattern: {pattern.decode('latin-1')}"
            for pattern in self._blocklist
            if pattern in lowered
        ]
        if threats:
            return self._reject(now, REJECT_SIGNATURE, threats)
        return ScanResult(clean=True, verdict="Clean", scanned_at=now)

    def _reject(self, now: datetime, rejection: str, threats: list[str]) -> ScanResult:
        Log.warning(f"Content scan rejected file ({rejection}): {', '.join(threats)}")
        return ScanResult(
            clean=False,
            verdict=f"Threats detected: {', '.join(threats)}",
            scanned_at=now,
            rejection=rejection,
            threats=threats,
        )


class DisabledScanner(BaseContentScanner):
    """Accepts everything; used when scanning is switched off."""

    def scan(self, content: bytes) -> ScanResult:
        return ScanResult(
            clean=True, verdict="Scan disabled", scanned_at=datetime.now(timezone.utc)
        )


def build_scanner(settings: Settings) -> BaseContentScanner:
    if not settings.scan_enabled:
        return DisabledScanner()
    return SignatureScanner(
        max_bytes=settings.max_upload_bytes,
        magic_header=settings.scan_magic_header.encode("latin-1"),
        blocklist=settings.scan_blocklist,
    )
