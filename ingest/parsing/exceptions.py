class ParsingError(Exception):
    """Base exception for statement parsing."""


class LineParseError(ParsingError):
    """A single statement line could not be read. The line is skipped."""


class NoTransactionsError(ParsingError):
    """Non-empty statement text yielded zero transactions."""


class PayloadValidationError(ParsingError):
    """Stored extracted_data does not describe a valid candidate list."""
