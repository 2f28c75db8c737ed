"""
csv_errors.py
Exceptions raised by the streaming CSV reader and writer.
Every error aborts the line or row being decoded; nothing is retried internally.
"""


class CsvError(Exception):
    """Base class for all reader/writer failures."""


class ConfigurationError(CsvError, ValueError):
    """Invalid dialect or limit passed to a reader, writer or settings object."""


class PrematureAccessError(CsvError, RuntimeError):
    """Header-dependent operation used before parse_header()."""

    def __init__(self, message: str = "To use this operation, parse_header must be called at least once"):
        super().__init__(message)


class MalformedQuotingError(CsvError):
    """Quoted value (or quoted line segment) without a proper closing quote."""


class RowShapeError(CsvError):
    """Row has fewer or more values than the header declares."""


class ResourceLimitError(CsvError):
    """Configured max line length or max character count exceeded."""


class UnknownColumnError(CsvError, KeyError):
    """Column name not present in the parsed header."""

    def __str__(self):
        # KeyError repr()s its argument
        return str(self.args[0]) if self.args else ""
