from collections.abc import Callable
from datetime import date
from typing import Any

from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from ingest.categorization.models import Category
from ingest.database.connection import get_connection
from ingest.database.models import LedgerTransaction, NewLedgerTransaction

KeywordMerge = Callable[[list[str]], tuple[list[str], list[str], list[str]]]


class LedgerRepository:
    """Read and write access to the ledger tables owned by the main application."""

    def transactions_for_user(
        self,
        user_id: int,
        date_from: date | None = None,
        date_to: date | None = None,
    ) -> list[LedgerTransaction]:
        """Live ledger rows of a user, optionally bounded by transaction date."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT id, user_id, transaction_date, amount, description, type
                    FROM transactions
                    WHERE user_id = %s
                      AND is_deleted = FALSE
                      AND (%s::date IS NULL OR transaction_date >= %s::date)
                      AND (%s::date IS NULL OR transaction_date <= %s::date)
                    ORDER BY transaction_date, id
                    """,
                    (user_id, date_from, date_from, date_to, date_to),
                )
                rows = cur.fetchall()

        return [
            LedgerTransaction(
                id=row["id"],
                user_id=row["user_id"],
                transaction_date=row["transaction_date"],
                amount=row["amount"],
                description=row["description"] or "",
                transaction_type=row["type"],
            )
            for row in rows
        ]

    def categories_by_type(self, user_id: int, category_type: str) -> list[Category]:
        """Active categories of one type: the user's own plus shared ones."""
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT id, user_id, name, type, icon, color, keywords
                    FROM categories
                    WHERE type = %s
                      AND is_active = TRUE
                      AND (user_id = %s OR user_id IS NULL)
                    ORDER BY name, id
                    """,
                    (category_type, user_id),
                )
                rows = cur.fetchall()
        return [_row_to_category(row) for row in rows]

    def find_category(self, category_id: int) -> Category | None:
        with get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(
                    """
                    SELECT id, user_id, name, type, icon, color, keywords
                    FROM categories
                    WHERE id = %s AND is_active = TRUE
                    """,
                    (category_id,),
                )
                row = cur.fetchone()
        return _row_to_category(row) if row is not None else None

    def update_keywords(
        self,
        category_id: int,
        user_id: int,
        source_text: str,
        merge: KeywordMerge,
    ) -> tuple[list[str], list[str], list[str]] | None:
        """Merge learned keywords into a category in one transaction.

        The category row is locked with ``SELECT ... FOR UPDATE`` before
        ``merge`` sees its keywords, so concurrent confirmations of the
        same category apply one after the other instead of overwriting
        each other. The audit event is written in the same transaction,
        and only when ``merge`` added something.

        Returns ``merge``'s (keywords, added, evicted), or None if the
        category does not exist.
        """
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT keywords
                    FROM categories
                    WHERE id = %s AND is_active = TRUE
                    FOR UPDATE
                    """,
                    (category_id,),
                )
                row = cur.fetchone()
                if row is None:
                    conn.rollback()
                    return None
                keywords, added, evicted = merge([str(keyword) for keyword in row[0] or []])
                if added:
                    cur.execute(
                        "UPDATE categories SET keywords = %s WHERE id = %s",
                        (Jsonb(keywords), category_id),
                    )
                    cur.execute(
                        """
                        INSERT INTO category_keyword_events
                        (category_id, user_id, added, evicted, source_text)
                        VALUES (%s, %s, %s, %s, %s)
                        """,
                        (category_id, user_id, Jsonb(added), Jsonb(evicted), source_text),
                    )
            conn.commit()
        return keywords, added, evicted

    def create_transaction(self, record: NewLedgerTransaction) -> int:
        """Write one ledger row and return its id.

        Importing the same candidate of the same document twice returns the
        id of the existing row instead of inserting a second one.
        """
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    INSERT INTO transactions
                    (user_id, account_id, category_id, transaction_date, amount,
                     description, type, merchant_name, reference_number, payment_method,
                     source_document_id, source_candidate_id)
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
                    ON CONFLICT (source_document_id, source_candidate_id) DO NOTHING
                    RETURNING id
                    """,
                    (
                        record.user_id,
                        record.account_id,
                        record.category_id,
                        record.transaction_date,
                        record.amount,
                        record.description,
                        record.transaction_type,
                        record.merchant_name,
                        record.reference_number,
                        record.payment_method,
                        record.source_document_id,
                        record.source_candidate_id,
                    ),
                )
                row = cur.fetchone()
                if row is None:
                    cur.execute(
                        """
                        SELECT id FROM transactions
                        WHERE source_document_id = %s AND source_candidate_id = %s
                        """,
                        (record.source_document_id, record.source_candidate_id),
                    )
                    row = cur.fetchone()
            conn.commit()
        if row is None:
            raise RuntimeError(
                f"Ledger write for candidate {record.source_candidate_id} returned no id"
            )
        return int(row[0])


def _row_to_category(row: dict[str, Any]) -> Category:
    keywords = row["keywords"] or []
    return Category(
        id=row["id"],
        user_id=row["user_id"],
        name=row["name"],
        type=row["type"],
        icon=row["icon"],
        color=row["color"],
        keywords=[str(k) for k in keywords],
    )
