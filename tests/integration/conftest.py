import os
import random
from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import psycopg
import pytest

from ingest.config.settings import Settings
from ingest.database import connection
from ingest.database.connection import close_pool, get_connection, init_pool
from ingest.database.models import JobRecord

SCHEMA_FILE = Path(connection.__file__).with_name("schema.sql")

# Deleted children first.
_CLEANUP_ORDER = ("ingest_jobs", "transactions", "uploaded_documents", "categories")


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "moneytracker_test")
    return Settings()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def integration_pool(test_settings: Settings) -> Generator[None, None, None]:
    try:
        init_pool(test_settings)
        with get_connection() as conn:
            conn.execute(SCHEMA_FILE.read_text())
            conn.commit()
    except Exception as e:
        close_pool()
        pytest.skip(f"PostgreSQL test DB not available: {e}. Set DB_* env to run")
    try:
        yield
    finally:
        close_pool()


@pytest.fixture
def db_conn(integration_pool: None) -> Generator[psycopg.Connection[Any], None, None]:
    with get_connection() as conn:
        yield conn


@pytest.fixture
def integration_cleanup(integration_pool: None) -> Generator[list[tuple[str, int]], None, None]:
    cleanup: list[tuple[str, int]] = []
    yield cleanup
    if not cleanup:
        return
    with get_connection() as conn:
        with conn.cursor() as cur:
            for table in _CLEANUP_ORDER:
                for row_table, row_id in cleanup:
                    if row_table != table:
                        continue
                    if table == "categories":
                        cur.execute(
                            "DELETE FROM category_keyword_events WHERE category_id = %s",
                            (row_id,),
                        )
                    cur.execute(f"DELETE FROM {table} WHERE id = %s", (row_id,))
        conn.commit()


@pytest.fixture
def user_id() -> int:
    """A user id no other test run shares."""
    return random.randint(10_000_000, 2_000_000_000)


@pytest.fixture
def files_root(tmp_path: Path) -> Path:
    return tmp_path


@pytest.fixture
def make_document(
    db_conn: psycopg.Connection[Any],
    integration_cleanup: list[tuple[str, int]],
    user_id: int,
) -> Callable[..., int]:
    def _make(
        status: str = "Uploaded",
        kind: str = "BankStatement",
        storage_path: str = "bankstatement/test/auszug.pdf",
        bank_name: str | None = "Deutsche Bank",
        file_size_bytes: int = 1024,
    ) -> int:
        with db_conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO uploaded_documents
                (user_id, kind, status, storage_disk, storage_path, original_filename,
                 content_type, file_size_bytes, account_id, bank_name)
                VALUES (%s, %s, %s, 'local', %s, 'auszug.pdf', 'application/pdf', %s, 1, %s)
                RETURNING id
                """,
                (user_id, kind, status, storage_path, file_size_bytes, bank_name),
            )
            row = cur.fetchone()
            assert row is not None
            document_id = int(row[0])
        db_conn.commit()
        integration_cleanup.append(("uploaded_documents", document_id))
        return document_id

    return _make


@pytest.fixture
def seed_document(make_document: Callable[..., int]) -> int:
    return make_document()


@pytest.fixture
def seed_job(
    db_conn: psycopg.Connection[Any],
    integration_cleanup: list[tuple[str, int]],
    seed_document: int,
) -> JobRecord:
    with db_conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO ingest_jobs (uploaded_document_id, status, attempts)
            VALUES (%s, 'pending', 0)
            RETURNING id
            """,
            (seed_document,),
        )
        row = cur.fetchone()
        assert row is not None
        job_id = int(row[0])
    db_conn.commit()
    integration_cleanup.append(("ingest_jobs", job_id))
    return JobRecord(id=job_id, uploaded_document_id=seed_document, status="pending", attempts=0)


@pytest.fixture
def seed_category(
    db_conn: psycopg.Connection[Any],
    integration_cleanup: list[tuple[str, int]],
    user_id: int,
) -> int:
    with db_conn.cursor() as cur:
        cur.execute(
            """
            INSERT INTO categories (user_id, name, type, keywords)
            VALUES (%s, 'Lebensmittel', 'Expense', '["rewe"]'::jsonb)
            RETURNING id
            """,
            (user_id,),
        )
        row = cur.fetchone()
        assert row is not None
        category_id = int(row[0])
    db_conn.commit()
    integration_cleanup.append(("categories", category_id))
    return category_id


@pytest.fixture
def statement_on_disk(
    make_document: Callable[..., int],
    files_root: Path,
    statement_pdf_bytes: bytes,
) -> tuple[int, Path]:
    storage_path = "bankstatement/test/kontoauszug.pdf"
    target = files_root / storage_path
    target.parent.mkdir(parents=True)
    target.write_bytes(statement_pdf_bytes)
    document_id = make_document(
        storage_path=storage_path, file_size_bytes=len(statement_pdf_bytes)
    )
    return document_id, files_root
