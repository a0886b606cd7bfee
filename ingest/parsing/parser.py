import re

from ingest.logging.logger import Log
from ingest.parsing.base import BaseStatementDialect
from ingest.parsing.delimited import CommerzbankDialect, RaiffeisenbankDialect, VolksbankDialect
from ingest.parsing.exceptions import NoTransactionsError
from ingest.parsing.fixed_column import PostbankDialect
from ingest.parsing.line_patterns import (
    DeutscheBankDialect,
    DkbDialect,
    GenericDialect,
    IngDialect,
    SparkasseDialect,
)
from ingest.parsing.models import ParseResult, StatementInfo
from ingest.parsing.statement_info import extract_statement_info


def default_dialects() -> list[BaseStatementDialect]:
    return [
        DeutscheBankDialect(),
        CommerzbankDialect(),
        DkbDialect(),
        IngDialect(),
        SparkasseDialect(),
        PostbankDialect(),
        VolksbankDialect(),
        RaiffeisenbankDialect(),
    ]


class StatementParser:
    """Selects a bank dialect from a name hint and parses statement text.

    Lookup is case-insensitive: an exact alias first, then an alias that
    stands as whole words inside the hint ("Sparkasse KölnBonn"), then a
    hint that starts a word of an alias ("Spark"). A partial hint needs at
    least four characters and one word that is not a legal-form or generic
    word, so "Bank" or "Bank AG" alone never picks a dialect. Unknown or
    empty hints use the generic dialect.
    """

    _MIN_PARTIAL_HINT = 4
    _GENERIC_WORDS = frozenset({"bank", "ag", "eg", "gmbh", "kg", "se"})

    def __init__(
        self,
        dialects: list[BaseStatementDialect] | None = None,
        fallback: BaseStatementDialect | None = None,
    ) -> None:
        self._registry: dict[str, BaseStatementDialect] = {}
        for dialect in dialects if dialects is not None else default_dialects():
            for alias in dialect.aliases:
                self._registry[alias.lower()] = dialect
        self._fallback = fallback if fallback is not None else GenericDialect()

    def resolve(self, bank_name_hint: str | None) -> BaseStatementDialect:
        hint = (bank_name_hint or "").strip().lower()
        if not hint:
            return self._fallback
        if hint in self._registry:
            return self._registry[hint]
        for alias, dialect in self._registry.items():
            if re.search(rf"\b{re.escape(alias)}\b", hint):
                return dialect
            if self._starts_alias_word(hint, alias):
                return dialect
        return self._fallback

    def _starts_alias_word(self, hint: str, alias: str) -> bool:
        if len(hint) < self._MIN_PARTIAL_HINT:
            return False
        if all(word in self._GENERIC_WORDS for word in re.split(r"[\s.\-]+", hint) if word):
            return False
        return re.search(rf"(?:^|[\s\-]){re.escape(hint)}", alias) is not None

    def supported_banks(self) -> list[str]:
        return sorted({dialect.name for dialect in self._registry.values()})

    def parse(self, text: str, bank_name_hint: str | None) -> ParseResult:
        """Parse statement text into candidates, in statement order.

        Raises:
            NoTransactionsError: if the text is non-empty but no row could be read.
        """
        dialect = self.resolve(bank_name_hint)
        Log.info(f"Parsing statement with {dialect.name} dialect (hint: {bank_name_hint!r})")
        result = dialect.parse(text)
        if text.strip() and not result.transactions:
            raise NoTransactionsError(
                f"{dialect.name} dialect found no transactions "
                f"({len(result.warnings)} lines skipped)"
            )
        Log.info(
            f"Parsed {len(result.transactions)} transactions, "
            f"{len(result.warnings)} warnings"
        )
        return result

    def statement_info(self, text: str, bank_name_hint: str | None) -> StatementInfo:
        dialect = self.resolve(bank_name_hint)
        bank_name = bank_name_hint if dialect is self._fallback else dialect.name
        return extract_statement_info(text, bank_name or "")
