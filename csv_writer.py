"""
csv_writer.py
Writes rows of values as delimited text readable by csv_reader.
"""

import io
import os
from typing import Iterable, Optional, Sequence, TextIO

from csv_logging import LoggingConfig
from csv_settings import validate_dialect

logger = LoggingConfig.get_logger(__name__)


class CsvWriter:
    """Writes comma-separated-value records to a text stream."""

    def __init__(self, writer: TextIO, delimiter: str = ",", quote: str = '"', line_terminator: Optional[str] = None):
        validate_dialect(delimiter, quote)
        self.writer = writer
        self.delimiter = delimiter
        self.quote = quote
        self.line_terminator = os.linesep if line_terminator is None else line_terminator
        # values holding any of these are quoted, with quotes doubled
        self.special_chars = frozenset(("\0", "\r", "\n", delimiter, quote))
        self.rows_written = 0

    def write_row(self, values: Sequence[Optional[str]]):
        write = self.writer.write
        for i, value in enumerate(values):
            if i > 0:
                write(self.delimiter)
            if not value:
                continue
            write(self.encode_value(value))
        write(self.line_terminator)
        self.rows_written += 1

    def write_rows(self, rows: Iterable[Sequence[Optional[str]]]):
        for row in rows:
            self.write_row(row)
        logger.debug("Wrote %d rows", self.rows_written)

    def encode_value(self, value: str) -> str:
        if self.special_chars.isdisjoint(value):
            return value
        escaped = value.replace(self.quote, self.quote * 2)
        return f"{self.quote}{escaped}{self.quote}"


def format_row(values: Sequence[Optional[str]], delimiter: str = ",", quote: str = '"', line_terminator: str = "") -> str:
    """Single record as a string, terminator omitted unless given."""
    out = io.StringIO()
    CsvWriter(out, delimiter, quote, line_terminator).write_row(values)
    return out.getvalue()
