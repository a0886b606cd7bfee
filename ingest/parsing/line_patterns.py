"""Regex-per-line dialects."""

import re
from dataclasses import dataclass

from ingest.parsing.amounts import AMOUNT, ANY_DATE, GERMAN_DATE, parse_amount, parse_date
from ingest.parsing.base import BaseStatementDialect
from ingest.parsing.exceptions import LineParseError
from ingest.parsing.models import StatementRow

_CURRENCY = r"(?:\s*(?:€|EUR))?"


@dataclass(frozen=True)
class RowPattern:
    """A row regex with named groups ``booking``, ``value``, ``description``, ``amount``.

    ``booking`` is optional; ``value`` is the date the money moved.
    """

    regex: re.Pattern[str]


def two_dates(date: str = GERMAN_DATE) -> RowPattern:
    return RowPattern(
        re.compile(
            rf"^(?P<booking>{date})\s+(?P<value>{date})\s+(?P<description>.+?)\s+"
            rf"(?P<amount>{AMOUNT}){_CURRENCY}$",
            re.IGNORECASE,
        )
    )


def one_date(date: str = GERMAN_DATE) -> RowPattern:
    return RowPattern(
        re.compile(
            rf"^(?P<value>{date})\s+(?P<description>.+?)\s+(?P<amount>{AMOUNT}){_CURRENCY}$",
            re.IGNORECASE,
        )
    )


def amount_first(date: str = GERMAN_DATE) -> RowPattern:
    return RowPattern(
        re.compile(
            rf"^(?P<value>{date})\s+(?P<amount>{AMOUNT}){_CURRENCY}\s+(?P<description>.+)$",
            re.IGNORECASE,
        )
    )


class LinePatternDialect(BaseStatementDialect):
    """Tries each row pattern in order; the first match wins."""

    patterns: tuple[RowPattern, ...] = ()

    def parse_row(self, line: str) -> StatementRow:
        for pattern in self.patterns:
            match = pattern.regex.match(line)
            if match is None:
                continue
            groups = match.groupdict()
            description = groups["description"].strip()
            if not description:
                raise LineParseError("empty description")
            booking = groups.get("booking")
            return StatementRow(
                transaction_date=parse_date(groups["value"]),
                booking_date=parse_date(booking) if booking else None,
                description=description,
                signed_amount=parse_amount(groups["amount"]),
            )
        raise LineParseError(f"unrecognised row '{line[:60]}'")


class DeutscheBankDialect(LinePatternDialect):
    name = "Deutsche Bank"
    aliases = ("deutsche bank",)
    confidence = 0.9
    patterns = (two_dates(), one_date())


class DkbDialect(LinePatternDialect):
    name = "DKB"
    aliases = ("dkb", "deutsche kreditbank")
    confidence = 0.88
    patterns = (two_dates(),)


class SparkasseDialect(LinePatternDialect):
    name = "Sparkasse"
    aliases = ("sparkasse",)
    confidence = 0.87
    patterns = (two_dates(),)


class IngDialect(LinePatternDialect):
    name = "ING"
    aliases = ("ing", "ing-diba", "ing diba")
    confidence = 0.85
    patterns = (one_date(),)


class GenericDialect(LinePatternDialect):
    """Fallback for unknown banks: German or ISO dates, amount last or first."""

    name = "Generic"
    confidence = 0.7
    patterns = (two_dates(ANY_DATE), one_date(ANY_DATE), amount_first(ANY_DATE))
