from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SCAN_BLOCKLIST = [
    "<script",
    "javascript:",
    "vbscript:",
    "onload=",
    "onclick=",
    "onerror=",
    "eval(",
    "document.cookie",
    "document.write",
    "<embed",
    "<object",
    "malicious_pattern",
    "virus_test_signature",
    "virus_signature",
]


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"

    db_host: str = "host.docker.internal"
    db_port: int = 5432
    db_database: str = "moneytracker"
    db_username: str = "moneytracker"
    db_password: str = "secret"

    max_job_attempts: int = 3
    job_poll_interval_seconds: int = 5

    pdf_engine: str = "pdfplumber"
    # Second engine tried when the first cannot read a file; empty disables.
    pdf_fallback_engine: str = "pymupdf"

    files_root: str = "/app/files"
    storage_disk: str = "local"
    max_upload_bytes: int = 10 * 1024 * 1024
    allowed_extensions: list[str] = [".pdf"]
    duplicate_upload_window_minutes: int = 60

    scan_enabled: bool = True
    scan_magic_header: str = "%PDF-"
    scan_blocklist: list[str] = DEFAULT_SCAN_BLOCKLIST

    processing_timeout_seconds: int = 300

    duplicate_window_days: int = 3
    duplicate_amount_tolerance: float = 0.01
    duplicate_threshold: float = 0.8

    category_min_confidence: float = 0.3
    category_max_suggestions: int = 5
    category_keyword_cap: int = 20
