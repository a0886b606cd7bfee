from abc import ABC, abstractmethod

from ingest.scanning.models import ScanResult


class BaseContentScanner(ABC):
    """Contract for scanners that inspect raw bytes before parsing."""

    @abstractmethod
    def scan(self, content: bytes) -> ScanResult:
        """Inspect raw file content.

        Never raises for bad content; a rejected file yields a non-clean result.
        """
