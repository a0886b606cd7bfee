import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

_PDF_DATE = re.compile(
    r"^D?:?(?P<year>\d{4})(?P<month>\d{2})?(?P<day>\d{2})?"
    r"(?P<hour>\d{2})?(?P<minute>\d{2})?(?P<second>\d{2})?"
    r"(?P<tz>[Zz]|[+-]\d{2}'?\d{2}'?)?"
)
_HEADER_VERSION = re.compile(rb"^%PDF-(\d\.\d)")


@dataclass(frozen=True)
class PdfMetadata:
    """Structural metadata; every optional field is best-effort."""

    page_count: int
    is_encrypted: bool
    file_size_bytes: int
    version: str | None = None
    title: str | None = None
    author: str | None = None
    subject: str | None = None
    creator: str | None = None
    creation_date: datetime | None = None


def parse_pdf_date(raw: object) -> datetime | None:
    """Parse a PDF date string like ``D:20240115103000+01'00'``.

    Returns None for anything that is not a recognisable date.
    """
    if not isinstance(raw, str):
        return None
    match = _PDF_DATE.match(raw.strip())
    if match is None:
        return None
    parts = match.groupdict()
    tz = _parse_offset(parts["tz"])
    try:
        return datetime(
            int(parts["year"]),
            int(parts["month"] or 1),
            int(parts["day"] or 1),
            int(parts["hour"] or 0),
            int(parts["minute"] or 0),
            int(parts["second"] or 0),
            tzinfo=tz,
        )
    except ValueError:
        return None


def _parse_offset(raw: str | None) -> timezone | None:
    if raw is None:
        return None
    if raw in ("Z", "z"):
        return timezone.utc
    digits = raw.replace("'", "")
    sign = -1 if digits[0] == "-" else 1
    hours, minutes = int(digits[1:3]), int(digits[3:5] or 0)
    return timezone(sign * timedelta(hours=hours, minutes=minutes))


def header_version(pdf_bytes: bytes) -> str | None:
    """Read the version from the ``%PDF-x.y`` header line."""
    match = _HEADER_VERSION.match(pdf_bytes[:16])
    return match.group(1).decode("ascii") if match else None


def clean_field(raw: object) -> str | None:
    if not isinstance(raw, str):
        return None
    value = raw.strip()
    return value or None


def metadata_to_dict(metadata: PdfMetadata) -> dict[str, object]:
    """JSON-ready form for the pdf_metadata column."""
    return {
        "page_count": metadata.page_count,
        "is_encrypted": metadata.is_encrypted,
        "file_size_bytes": metadata.file_size_bytes,
        "version": metadata.version,
        "title": metadata.title,
        "author": metadata.author,
        "subject": metadata.subject,
        "creator": metadata.creator,
        "creation_date": (
            metadata.creation_date.isoformat() if metadata.creation_date is not None else None
        ),
    }
