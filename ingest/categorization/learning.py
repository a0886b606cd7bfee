import re
from collections.abc import Callable
from typing import Protocol

from ingest.categorization.lexicon import STOPWORDS
from ingest.categorization.models import Category, KeywordUpdate
from ingest.logging.logger import Log

MIN_KEYWORD_LENGTH = 4

_TOKEN = re.compile(r"[^\W\d_][\w&+-]*", re.UNICODE)


class KeywordStore(Protocol):
    def find_category(self, category_id: int) -> Category | None: ...

    def update_keywords(
        self,
        category_id: int,
        user_id: int,
        source_text: str,
        merge: Callable[[list[str]], tuple[list[str], list[str], list[str]]],
    ) -> tuple[list[str], list[str], list[str]] | None: ...


def learn_keywords(existing: list[str], text: str, cap: int) -> tuple[list[str], list[str], list[str]]:
    """Append novel tokens from ``text`` and evict the oldest beyond ``cap``.

    Returns (keywords, added, evicted).
    """
    known = {keyword.lower() for keyword in existing}
    added: list[str] = []
    for token in _TOKEN.findall(text.lower()):
        token = token.strip("-+&")
        if len(token) < MIN_KEYWORD_LENGTH or token in STOPWORDS or token in known:
            continue
        known.add(token)
        added.append(token)

    keywords = list(existing) + added
    overflow = max(0, len(keywords) - cap)
    return keywords[overflow:], added, keywords[:overflow]


class KeywordLearner:
    """Explicit write path for keywords learned from a confirmed category."""

    def __init__(self, store: KeywordStore, cap: int = 20) -> None:
        self._store = store
        self._cap = cap

    def confirm(
        self,
        user_id: int,
        category_id: int,
        description: str,
        merchant_name: str | None = None,
    ) -> KeywordUpdate | None:
        """Learn from the user's choice. Returns None if the category is unknown.

        The merge runs against the keywords as locked by the store, not
        the ones read for the ownership check. Nothing is written when the
        text adds no new keyword.
        """
        category = self._store.find_category(category_id)
        if category is None:
            Log.warning(f"Keyword learning skipped: category {category_id} not found")
            return None
        if category.user_id is not None and category.user_id != user_id:
            Log.warning(
                f"Keyword learning skipped: category {category_id} not owned by user {user_id}"
            )
            return None

        source_text = f"{description} {merchant_name or ''}".strip()
        merged = self._store.update_keywords(
            category_id,
            user_id,
            source_text,
            lambda existing: learn_keywords(existing, source_text, self._cap),
        )
        if merged is None:
            Log.warning(f"Keyword learning skipped: category {category_id} disappeared")
            return None

        keywords, added, evicted = merged
        update = KeywordUpdate(
            category_id=category_id, keywords=keywords, added=added, evicted=evicted
        )
        if not update.changed:
            Log.debug(f"No new keywords for category {category_id}")
        else:
            Log.info(
                f"Category {category_id} learned {len(added)} keywords "
                f"({len(evicted)} evicted)"
            )
        return update
