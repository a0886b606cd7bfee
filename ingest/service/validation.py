import re
from datetime import date
from pathlib import PurePath

from ingest.config.settings import Settings
from ingest.processor.models import DocumentKind
from ingest.service.exceptions import UploadValidationError
from ingest.service.models import UploadMetadata

MAX_BANK_NAME_LENGTH = 100
MAX_PERIOD_DAYS = 366
MAX_DESCRIPTION_LENGTH = 500
MAX_TAGS_LENGTH = 200
MAX_TAG_LENGTH = 30

_BANK_NAME = re.compile(r"^[\w &.\-]+$")
_TAG = re.compile(r"[\w\- ]+")


def validate_upload(
    content: bytes, metadata: UploadMetadata, settings: Settings, today: date
) -> None:
    """Reject malformed uploads before anything is stored.

    Raises:
        UploadValidationError: listing every rule the upload breaks.
    """
    errors = _file_errors(content, metadata.filename, settings)
    if metadata.kind not in DocumentKind.ALL:
        errors.append(f"Unknown document kind '{metadata.kind}'")
    if metadata.kind == DocumentKind.BANK_STATEMENT:
        errors.extend(_statement_errors(metadata, today))
    errors.extend(_note_errors(metadata))
    if errors:
        raise UploadValidationError(errors)


def _file_errors(content: bytes, filename: str, settings: Settings) -> list[str]:
    errors: list[str] = []
    if not content:
        errors.append("File must not be empty")
    elif len(content) > settings.max_upload_bytes:
        limit_mb = settings.max_upload_bytes / (1024 * 1024)
        errors.append(f"File is too large. Maximum size: {limit_mb:g} MB")
    if not filename or not filename.strip():
        errors.append("File name is required")
    elif PurePath(filename).suffix.lower() not in {e.lower() for e in settings.allowed_extensions}:
        errors.append(
            f"Unsupported file type. Allowed: {', '.join(settings.allowed_extensions)}"
        )
    return errors


def _statement_errors(metadata: UploadMetadata, today: date) -> list[str]:
    errors: list[str] = []
    if metadata.account_id is None:
        errors.append("Account is required for bank statements")

    bank_name = (metadata.bank_name or "").strip()
    if not bank_name:
        errors.append("Bank name is required")
    elif len(bank_name) > MAX_BANK_NAME_LENGTH:
        errors.append(f"Bank name must be at most {MAX_BANK_NAME_LENGTH} characters")
    elif not _BANK_NAME.match(bank_name) or "_" in bank_name:
        errors.append("Bank name may only contain letters, digits, spaces and & - .")

    start, end = metadata.period_start, metadata.period_end
    if start is not None and start > today:
        errors.append("Period start cannot be in the future")
    if end is not None and end > today:
        errors.append("Period end cannot be in the future")
    if start is not None and end is not None:
        if start >= end:
            errors.append("Period start must be before period end")
        elif (end - start).days > MAX_PERIOD_DAYS:
            errors.append(f"Statement period must not exceed {MAX_PERIOD_DAYS} days")
    return errors


def _note_errors(metadata: UploadMetadata) -> list[str]:
    errors: list[str] = []
    if metadata.description and len(metadata.description) > MAX_DESCRIPTION_LENGTH:
        errors.append(f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters")
    if not metadata.tags or not metadata.tags.strip():
        return errors
    if len(metadata.tags) > MAX_TAGS_LENGTH:
        errors.append(f"Tags must be at most {MAX_TAGS_LENGTH} characters")
    if not all(_valid_tag(tag) for tag in _raw_tags(metadata.tags)):
        errors.append(
            "Tags must be comma-separated, at most "
            f"{MAX_TAG_LENGTH} characters each, using only letters, digits, spaces, - and _"
        )
    return errors


def _valid_tag(tag: str) -> bool:
    return bool(tag) and len(tag) <= MAX_TAG_LENGTH and _TAG.fullmatch(tag) is not None


def _raw_tags(raw: str) -> list[str]:
    # "a,,b" has an empty entry, which is skipped; " , " has a blank tag, which is not.
    return [part.strip() for part in raw.split(",") if part]


def normalize_tags(raw: str | None) -> str | None:
    """Stored form of validated tags: trimmed, blank entries dropped, joined with ","."""
    if raw is None:
        return None
    tags = [tag for tag in _raw_tags(raw) if tag]
    return ",".join(tags) or None
