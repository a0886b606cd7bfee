from unittest.mock import MagicMock

from ingest.scanning.content_scanner import (
    REJECT_INVALID_HEADER,
    REJECT_OVERSIZE,
    REJECT_SIGNATURE,
    DisabledScanner,
    SignatureScanner,
    build_scanner,
)


def _scanner(max_bytes: int = 1024) -> SignatureScanner:
    return SignatureScanner(
        max_bytes=max_bytes,
        magic_header=b"%PDF-",
        blocklist=["<script", "javascript:", "virus_signature"],
    )


class TestCleanContent:
    def test_real_pdf_is_clean(self, sample_pdf_bytes: bytes) -> None:
        result = _scanner(max_bytes=10 * 1024 * 1024).scan(sample_pdf_bytes)

        assert result.clean is True
        assert result.verdict == "Clean"
        assert result.rejection is None
        assert result.threats == []

    def test_sets_scan_timestamp(self) -> None:
        result = _scanner().scan(b"%PDF-1.4 body")

        assert result.scanned_at is not None
        assert result.scanned_at.tzinfo is not None


class TestRejections:
    def test_oversize_rejected(self) -> None:
        result = _scanner(max_bytes=10).scan(b"%PDF-1.4 " + b"x" * 20)

        assert result.clean is False
        assert result.rejection == REJECT_OVERSIZE
        assert result.threats == ["File too large (29 bytes)"]

    def test_oversize_stops_before_signature_search(self) -> None:
        result = _scanner(max_bytes=10).scan(b"%PDF-<script>alert(1)</script>")

        assert result.rejection == REJECT_OVERSIZE
        assert len(result.threats) == 1

    def test_invalid_header_rejected(self) -> None:
        result = _scanner().scan(b"<html>not a pdf</html>")

        assert result.clean is False
        assert result.rejection == REJECT_INVALID_HEADER
        assert result.verdict == "Threats detected: Invalid PDF format"

    def test_signature_rejected(self) -> None:
        result = _scanner().scan(b"%PDF-1.4 /JS (javascript:alert(1))")

        assert result.clean is False
        assert result.rejection == REJECT_SIGNATURE
        assert result.threats == ["Suspicious pattern: javascript:"]

    def test_signature_match_is_case_insensitive(self) -> None:
        result = _scanner().scan(b"%PDF-1.4 <SCRIPT>")

        assert result.rejection == REJECT_SIGNATURE

    def test_lists_every_matched_signature(self) -> None:
        result = _scanner().scan(b"%PDF-1.4 <script virus_signature")

        assert result.threats == [
            "Suspicious pattern: <script",
            "Suspicious pattern: virus_signature",
        ]
        assert result.verdict.startswith("Threats detected: ")


class TestBuildScanner:
    def test_disabled_scanner_accepts_anything(self) -> None:
        scanner = build_scanner(MagicMock(scan_enabled=False))

        result = scanner.scan(b"<script>")

        assert isinstance(scanner, DisabledScanner)
        assert result.clean is True
        assert result.verdict == "Scan disabled"

    def test_enabled_scanner_uses_settings(self) -> None:
        settings = MagicMock(
            scan_enabled=True,
            max_upload_bytes=5,
            scan_magic_header="%PDF-",
            scan_blocklist=[],
        )

        result = build_scanner(settings).scan(b"%PDF-1.7")

        assert result.rejection == REJECT_OVERSIZE
