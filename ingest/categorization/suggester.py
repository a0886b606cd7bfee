import re
from decimal import Decimal
from typing import Protocol

from ingest.categorization.lexicon import AMOUNT_HINTS, CATEGORY_KEYWORDS, MERCHANTS, family_for
from ingest.categorization.models import Category, CategorySuggestion
from ingest.config.settings import Settings
from ingest.logging.logger import Log
from ingest.parsing.models import ExtractedTransaction

USER_KEYWORD_SCORE = 0.8
LEXICON_KEYWORD_SCORE = 0.6
MERCHANT_SCORE = 0.9
AMOUNT_HINT_SCORE = 0.1

# Lexicon entries this short only count as whole words ("db", "bp", "gas").
_SHORT_TERM = 3


class CategoryReader(Protocol):
    def categories_by_type(self, user_id: int, category_type: str) -> list[Category]: ...


def contains_term(text: str, term: str) -> bool:
    term = term.strip().lower()
    if not term:
        return False
    if len(term) <= _SHORT_TERM:
        return re.search(rf"(?<!\w){re.escape(term)}(?!\w)", text) is not None
    return term in text


class CategorySuggester:
    """Ranks the user's categories of the matching type for a description.

    Scores add up per rule hit and are capped at 1.0.
    """

    def __init__(
        self,
        category_reader: CategoryReader,
        min_confidence: float = 0.3,
        max_suggestions: int = 5,
    ) -> None:
        self._category_reader = category_reader
        self._min_confidence = min_confidence
        self._max_suggestions = max_suggestions

    def suggest(
        self,
        user_id: int,
        description: str,
        merchant_name: str | None,
        amount: Decimal | None,
        transaction_type: str,
        categories: list[Category] | None = None,
    ) -> list[CategorySuggestion]:
        if categories is None:
            categories = self._category_reader.categories_by_type(user_id, transaction_type)
        text = f"{description} {merchant_name or ''}".lower()

        suggestions: list[CategorySuggestion] = []
        for category in categories:
            score, reason = self.score(category, text, amount)
            if score > self._min_confidence:
                suggestions.append(
                    CategorySuggestion(
                        category_id=category.id,
                        category_name=category.name,
                        category_icon=category.icon,
                        category_color=category.color,
                        confidence_score=score,
                        match_reason=reason,
                    )
                )
        suggestions.sort(key=lambda s: (-s.confidence_score, s.category_name, s.category_id))
        return suggestions[: self._max_suggestions]

    def score(
        self, category: Category, text: str, amount: Decimal | None
    ) -> tuple[float, str]:
        """Score one category against lower-cased ``text``.

        Returns the capped score and the first rule that fired.
        """
        score = 0.0
        reasons: list[str] = []

        for keyword in category.keywords:
            if keyword.strip() and keyword.strip().lower() in text:
                score += USER_KEYWORD_SCORE
                reasons.append(f"Keyword match: {keyword.strip()}")

        family = family_for(category.name)
        if family is not None:
            for merchant in MERCHANTS.get(family, []):
                if contains_term(text, merchant):
                    score += MERCHANT_SCORE
                    reasons.append(f"Merchant match: {merchant}")
            for keyword in CATEGORY_KEYWORDS.get(family, []):
                if contains_term(text, keyword):
                    score += LEXICON_KEYWORD_SCORE
                    reasons.append(f"German keyword: {keyword}")
            if amount is not None and _amount_fits(family, amount):
                score += AMOUNT_HINT_SCORE

        reason = reasons[0] if reasons else "Pattern recognition"
        return min(score, 1.0), reason

    def apply(self, user_id: int, candidates: list[ExtractedTransaction]) -> int:
        """Set the top suggestion on each candidate; returns how many got one."""
        by_type: dict[str, list[Category]] = {}
        assigned = 0
        for candidate in candidates:
            if candidate.transaction_type not in by_type:
                by_type[candidate.transaction_type] = self._category_reader.categories_by_type(
                    user_id, candidate.transaction_type
                )
            suggestions = self.suggest(
                user_id,
                candidate.description,
                candidate.merchant_name,
                candidate.amount,
                candidate.transaction_type,
                categories=by_type[candidate.transaction_type],
            )
            if suggestions:
                candidate.suggested_category_id = suggestions[0].category_id
                candidate.suggested_category_name = suggestions[0].category_name
                assigned += 1
            else:
                candidate.suggested_category_id = None
                candidate.suggested_category_name = None
        Log.info(f"Suggested categories for {assigned} of {len(candidates)} candidates")
        return assigned


def _amount_fits(family: str, amount: Decimal) -> bool:
    bounds = AMOUNT_HINTS.get(family)
    if bounds is None:
        return False
    low, high = bounds
    value = float(abs(amount))
    if low is not None and value <= low:
        return False
    if high is not None and value >= high:
        return False
    return True


def build_category_suggester(settings: Settings, category_reader: CategoryReader) -> CategorySuggester:
    return CategorySuggester(
        category_reader,
        min_confidence=settings.category_min_confidence,
        max_suggestions=settings.category_max_suggestions,
    )
