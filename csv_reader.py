"""
csv_reader.py
Streaming reader for delimited, quoted text records (CSV-style).

Usage:
    from csv_reader import CsvReader, TextBuffer
    reader = CsvReader()
    line = TextBuffer()
    for line_no in reader.consume_lines(stream, line):
        if not reader.has_header:
            reader.parse_header(line)
            continue
        reader.parse_line(line)
        print(reader["name"])

    # or, for the common case
    from csv_reader import iter_rows
    for row in iter_rows(stream):
        ...

Line breaks (LF, CR) are allowed inside quoted values. NUL characters are dropped.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from csv_errors import (
    ConfigurationError,
    CsvError,
    MalformedQuotingError,
    PrematureAccessError,
    ResourceLimitError,
    RowShapeError,
    UnknownColumnError,
)
from csv_logging import LoggingConfig
from csv_settings import ReaderSettings, get_settings, load_env_file, validate_dialect, validate_limit

logger = LoggingConfig.get_logger(__name__)


# ---------- buffers ----------

class TextBuffer:
    """Growable character buffer. Cleared and refilled, never reallocated, between lines."""

    __slots__ = ("_chars", "_text")

    def __init__(self, text: str = ""):
        self._chars: List[str] = list(text)
        self._text: Optional[str] = None

    def append(self, ch: str):
        self._chars.append(ch)
        self._text = None

    def extend(self, text: str):
        self._chars.extend(text)
        self._text = None

    def clear(self):
        self._chars.clear()
        self._text = None

    def __len__(self) -> int:
        return len(self._chars)

    def __str__(self) -> str:
        # joined once per fill; field reads on the same line reuse it
        if self._text is None:
            self._text = "".join(self._chars)
        return self._text

    def __repr__(self) -> str:
        return f"TextBuffer({str(self)!r})"

    def __eq__(self, other) -> bool:
        if isinstance(other, TextBuffer):
            return self._chars == other._chars
        if isinstance(other, str):
            return str(self) == other
        return NotImplemented

    __hash__ = None


TextLike = Union[str, TextBuffer]
Source = Union[str, Iterable[str], Any]  # str, file-like with read(n), or iterable of chunks


def iter_blocks(source: Source, block_size: int = 10000) -> Iterator[str]:
    """
    Normalize an input source into a sequence of text blocks.
    Accepts a str, a file-like object with read(n), or any iterable of str chunks.
    Chunk sizes and their alignment with lines are irrelevant to the reader.
    """
    if isinstance(source, str):
        if source:
            yield source
        return

    read = getattr(source, "read", None)
    if callable(read):
        while True:
            block = read(block_size)
            if not block:
                break
            _require_text(block)
            yield block
        return

    for block in source:
        _require_text(block)
        if block:
            yield block


def _require_text(block):
    if not isinstance(block, str):
        raise TypeError(f"Expected text blocks, got {type(block).__name__}; open the source in text mode")


# ---------- line splitter state machine ----------

class ParserState(Enum):
    VALUE_START = "value_start"                    # start of line or right after a delimiter
    UNQUOTED = "unquoted"
    QUOTED = "quoted"
    QUOTED_PENDING_CLOSE = "quoted_pending_close"  # quote seen inside quoted value, may be closing or half of a pair


class CharClass(Enum):
    QUOTE = "quote"
    DELIMITER = "delimiter"
    CR = "cr"
    LF = "lf"
    OTHER = "other"


class Action(Enum):
    APPEND = "append"
    SKIP = "skip"
    END_LINE = "end_line"


_S = ParserState
_C = CharClass
_A = Action

TRANSITIONS: Dict[Tuple[ParserState, CharClass], Tuple[ParserState, Action]] = {
    # a quote opens a value only at its first character; inside, quotes pair up
    (_S.VALUE_START, _C.QUOTE): (_S.QUOTED, _A.APPEND),
    (_S.UNQUOTED, _C.QUOTE): (_S.UNQUOTED, _A.APPEND),
    (_S.QUOTED, _C.QUOTE): (_S.QUOTED_PENDING_CLOSE, _A.APPEND),
    (_S.QUOTED_PENDING_CLOSE, _C.QUOTE): (_S.QUOTED, _A.APPEND),

    (_S.VALUE_START, _C.DELIMITER): (_S.VALUE_START, _A.APPEND),
    (_S.UNQUOTED, _C.DELIMITER): (_S.VALUE_START, _A.APPEND),
    (_S.QUOTED, _C.DELIMITER): (_S.QUOTED, _A.APPEND),
    (_S.QUOTED_PENDING_CLOSE, _C.DELIMITER): (_S.VALUE_START, _A.APPEND),

    # CR outside quotes is absorbed
    (_S.VALUE_START, _C.CR): (_S.VALUE_START, _A.SKIP),
    (_S.UNQUOTED, _C.CR): (_S.VALUE_START, _A.SKIP),
    (_S.QUOTED, _C.CR): (_S.QUOTED, _A.APPEND),
    (_S.QUOTED_PENDING_CLOSE, _C.CR): (_S.VALUE_START, _A.SKIP),

    (_S.VALUE_START, _C.LF): (_S.VALUE_START, _A.END_LINE),
    (_S.UNQUOTED, _C.LF): (_S.VALUE_START, _A.END_LINE),
    (_S.QUOTED, _C.LF): (_S.QUOTED, _A.APPEND),
    (_S.QUOTED_PENDING_CLOSE, _C.LF): (_S.VALUE_START, _A.END_LINE),

    (_S.VALUE_START, _C.OTHER): (_S.UNQUOTED, _A.APPEND),
    (_S.UNQUOTED, _C.OTHER): (_S.UNQUOTED, _A.APPEND),
    (_S.QUOTED, _C.OTHER): (_S.QUOTED, _A.APPEND),
    (_S.QUOTED_PENDING_CLOSE, _C.OTHER): (_S.QUOTED, _A.APPEND),
}


class LineSplitter:
    """
    Splits a chunked character stream into logical lines.
    Quote state carries over chunk boundaries; a quoted value may hold raw CR/LF,
    which extends the logical line instead of ending it.
    """

    def __init__(
        self,
        delimiter: str = ",",
        quote: str = '"',
        max_line_length: int = sys.maxsize,
        max_char_count: int = sys.maxsize,
        block_size: int = 10000,
        has_header: Optional[Callable[[], bool]] = None,
    ):
        validate_dialect(delimiter, quote)
        self.delimiter = delimiter
        self.quote = quote
        self.max_line_length = validate_limit("max_line_length", max_line_length)
        self.max_char_count = validate_limit("max_char_count", max_char_count)
        self.block_size = validate_limit("block_size", block_size)
        self._has_header = has_header or (lambda: False)
        self._classes = {
            quote: CharClass.QUOTE,
            delimiter: CharClass.DELIMITER,
            "\r": CharClass.CR,
            "\n": CharClass.LF,
        }

    def consume_lines(self, source: Source, line_buffer: TextBuffer) -> Iterator[int]:
        """
        Reads the source and yields the number of every logical line once line_buffer holds it.
        The buffer is reused: consume it before advancing the iterator.
        Numbering starts at 1 when a header is already parsed, else at 0.
        """
        line_buffer.clear()

        has_header = self._has_header
        classes = self._classes
        other = CharClass.OTHER
        max_line_length = self.max_line_length
        max_char_count = self.max_char_count

        line_count = 1 if has_header() else 0
        char_count = 0
        state = ParserState.VALUE_START

        for block in iter_blocks(source, self.block_size):
            for ch in block:
                char_count += 1
                if char_count > max_char_count:
                    raise ResourceLimitError(
                        f"Input stream has more characters than configured max number: {max_char_count}"
                    )

                if ch == "\0":
                    continue

                state, action = TRANSITIONS[(state, classes.get(ch, other))]

                if action is Action.APPEND:
                    line_buffer.append(ch)
                    if len(line_buffer) > max_line_length:
                        raise ResourceLimitError(
                            f"Line {line_count} is longer than configured max length: {max_line_length}"
                        )
                elif action is Action.END_LINE:
                    if has_header() and not len(line_buffer):
                        raise RowShapeError(
                            f"Empty content lines are not allowed when header is present, line {line_count}"
                        )
                    yield line_count
                    line_buffer.clear()
                    line_count += 1

        if state is ParserState.QUOTED:
            raise MalformedQuotingError(f"Last line is not terminated properly, line {line_count}")

        if len(line_buffer):
            yield line_count
            line_buffer.clear()

        logger.debug("Input consumed", extra={"lines": line_count, "chars": char_count})


# ---------- field extractor ----------

class FieldExtractor:
    """Decodes one field at a time out of a logical line."""

    def __init__(self, delimiter: str = ",", quote: str = '"'):
        validate_dialect(delimiter, quote)
        self.delimiter = delimiter
        self.quote = quote

    def read_field(self, line: TextLike, offset: int, value: TextBuffer) -> Tuple[bool, int]:
        """
        Appends the field starting at offset to value (value is not cleared here).
        Returns (found, next_offset): found is True if a field, possibly empty, was present;
        next_offset points past the field and its trailing delimiter.
        """
        if offset < 0:
            raise ValueError(f"Offset cannot be negative: {offset}")

        if not isinstance(line, str):
            line = str(line)
        n = len(line)
        if offset > n:
            return False, offset

        quote = self.quote
        delimiter = self.delimiter
        end = offset
        quoted = False
        closed = False
        last = ""

        while end < n:
            ch = line[end]
            last = ch

            # only a quote in first position makes the value quoted
            if end == offset and ch == quote:
                quoted = True
                end += 1
                continue

            if quoted and ch == quote:
                if closed:
                    raise MalformedQuotingError(f"Invalid quoting of value at offset {offset}")
                run = self._quote_run(line, end)
                if run > 1:
                    pairs = run // 2
                    value.extend(quote * pairs)
                    end += pairs * 2
                else:
                    closed = True
                    end += 1
                continue

            if ch == delimiter and (closed or not quoted):
                break

            if closed:
                raise MalformedQuotingError(
                    f"Unexpected character {ch!r} after closing quote of value at offset {offset}"
                )

            if ch != "\0":
                value.append(ch)
            end += 1

        if quoted and not closed:
            raise MalformedQuotingError(f"Invalid quoting of value at offset {offset}")

        # an empty value still counts when a delimiter is in front of it
        found = end > offset or last == delimiter or (offset > 0 and line[offset - 1] == delimiter)
        return found, end + 1

    def _quote_run(self, line: str, start: int) -> int:
        end = start
        while end < len(line) and line[end] == self.quote:
            end += 1
        return end - start


# ---------- header ----------

@dataclass(frozen=True)
class HeaderTable:
    names: Tuple[str, ...] = ()
    # case-folded name -> first index carrying that name
    index: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_line(cls, line: TextLike, extractor: FieldExtractor) -> HeaderTable:
        text = str(line)
        names: List[str] = []
        index: Dict[str, int] = {}
        value = TextBuffer()
        offset = 0
        while True:
            found, offset = extractor.read_field(text, offset, value)
            if not found:
                break
            name = str(value)
            key = name.casefold()
            if key in index:
                logger.warning(
                    "Duplicate column name %r at index %d; lookups by name resolve to index %d",
                    name, len(names), index[key],
                )
            else:
                index[key] = len(names)
            names.append(name)
            value.clear()
        return cls(tuple(names), index)

    @property
    def column_count(self) -> int:
        return len(self.names)

    def find(self, name: str) -> int:
        """Index of the column, or -1."""
        return self.index.get(name.casefold(), -1)

    def name_at(self, index: int) -> str:
        if not 0 <= index < len(self.names):
            raise IndexError(f"Index is not found in the parsed header: {index}")
        return self.names[index]


# ---------- reader ----------

class CsvReader:
    """
    Parses CSV text streams with configurable delimiter and quote characters.
    Provides a line splitter (consume_lines) and a field extractor (read_field).
    parse_header must be called once before parse_line or any column access;
    parsing a header again replaces the previous one.
    """

    def __init__(
        self,
        delimiter: Optional[str] = None,
        quote: Optional[str] = None,
        max_line_length: Optional[int] = None,
        max_char_count: Optional[int] = None,
        settings: Optional[ReaderSettings] = None,
    ):
        settings = settings or get_settings()
        self.delimiter = settings.delimiter if delimiter is None else delimiter
        self.quote = settings.quote if quote is None else quote
        validate_dialect(self.delimiter, self.quote)
        self.max_line_length = validate_limit(
            "max_line_length", settings.max_line_length if max_line_length is None else max_line_length
        )
        self.max_char_count = validate_limit(
            "max_char_count", settings.max_char_count if max_char_count is None else max_char_count
        )
        self.block_size = settings.read_block_size

        self._extractor = FieldExtractor(self.delimiter, self.quote)
        self._header: Optional[HeaderTable] = None
        self._values: List[TextBuffer] = []

    # -------- lines & fields --------
    def consume_lines(self, source: Source, line_buffer: TextBuffer) -> Iterator[int]:
        splitter = LineSplitter(
            self.delimiter,
            self.quote,
            self.max_line_length,
            self.max_char_count,
            block_size=self.block_size,
            has_header=lambda: self._header is not None,
        )
        return splitter.consume_lines(source, line_buffer)

    def read_field(self, line: TextLike, offset: int, value: TextBuffer) -> Tuple[bool, int]:
        return self._extractor.read_field(line, offset, value)

    # -------- header --------
    def parse_header(self, line: TextLike):
        """Builds column names from the given line. The line may be empty."""
        header = HeaderTable.from_line(line, self._extractor)
        self._values = [TextBuffer() for _ in range(header.column_count)]
        self._header = header
        logger.debug("Parsed header with %d columns", header.column_count)

    @property
    def has_header(self) -> bool:
        return self._header is not None

    @property
    def header(self) -> HeaderTable:
        return self._require_header()

    @property
    def column_count(self) -> int:
        return self._require_header().column_count

    @property
    def columns(self) -> Tuple[str, ...]:
        return self._require_header().names

    def require_column_name(self, index: int) -> str:
        return self._require_header().name_at(index)

    def find_column_index(self, name: str) -> int:
        """Column index by case-insensitive name, or -1 if not found."""
        return self._require_header().find(name)

    # -------- rows --------
    def parse_line(self, line: TextLike):
        """
        Reads column values from the line so they can be accessed by index or name.
        Unread columns stay empty if decoding fails part way through.
        """
        self._require_header()

        for value in self._values:
            value.clear()

        text = str(line)
        offset = 0
        for col_index, value in enumerate(self._values):
            found, offset = self._extractor.read_field(text, offset, value)
            if not found:
                raise RowShapeError(f"Expected value but reached end of line, column index {col_index}")

        if offset != len(text) + 1:
            raise RowShapeError("Line has more values than declared in the header")

    def __getitem__(self, key: Union[int, str]) -> str:
        header = self._require_header()
        if isinstance(key, str):
            index = header.find(key)
            if index < 0:
                raise UnknownColumnError(f"Column name is not found in the parsed header: {key}")
        else:
            index = key
            if not 0 <= index < header.column_count:
                raise IndexError(f"Column index out of range: {index}")
        return str(self._values[index])

    def values(self) -> List[str]:
        self._require_header()
        return [str(v) for v in self._values]

    def as_dict(self) -> Dict[str, str]:
        """Current row keyed by original column names; the first of duplicate names wins."""
        header = self._require_header()
        row: Dict[str, str] = {}
        for name, value in zip(header.names, self._values):
            row.setdefault(name, str(value))
        return row

    def _require_header(self) -> HeaderTable:
        if self._header is None:
            raise PrematureAccessError()
        return self._header


# ---------- top-level API ----------

def iter_rows(source: Source, reader: Optional[CsvReader] = None, **options) -> Iterator[Dict[str, str]]:
    """First logical line is the header; yields one dict per data row."""
    reader = reader or CsvReader(**options)
    line = TextBuffer()
    for _ in reader.consume_lines(source, line):
        if not reader.has_header:
            reader.parse_header(line)
            continue
        reader.parse_line(line)
        yield reader.as_dict()


def parse_text(text: Source, **options) -> Dict[str, Any]:
    """
    Returns:
      {
        "columns": List[str],
        "rows": List[Dict[str, str]],
        "summary": {"columns": int, "rows": int}
      }
    """
    reader = CsvReader(**options)
    rows = list(iter_rows(text, reader=reader))
    columns = list(reader.columns) if reader.has_header else []
    return {
        "columns": columns,
        "rows": rows,
        "summary": {"columns": len(columns), "rows": len(rows)},
    }


def parse_file(path: Union[str, os.PathLike], encoding: str = "utf-8", **options) -> Dict[str, Any]:
    # newline="" keeps CR/LF inside quoted values untouched
    with open(path, "r", encoding=encoding, newline="") as f:
        return parse_text(f, **options)


USAGE = "Usage: python csv_reader.py <input.csv> [max_rows]"


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        print(USAGE)
        return 1
    path = argv[0]
    try:
        max_rows = int(argv[1]) if len(argv) > 1 else 10
    except ValueError:
        max_rows = -1
    if max_rows < 0:
        print("max_rows must be a non-negative integer, got", argv[1])
        print(USAGE)
        return 1
    if not os.path.isfile(path):
        print("File not found:", path)
        return 1

    # only the CLI owns logging setup; as a library the host configures it
    try:
        load_env_file()
        LoggingConfig.configure()
    except ConfigurationError as e:
        print("Invalid configuration:", e, file=sys.stderr)
        return 1

    LoggingConfig.set_context(source=path)
    try:
        out = parse_file(path)
    except OSError as e:
        logger.error("Cannot read %s: %s", path, e)
        return 1
    except (CsvError, UnicodeDecodeError) as e:
        logger.error("Failed to decode %s: %s", path, e)
        return 2
    finally:
        LoggingConfig.clear_context()

    print("=== COLUMNS ===")
    print(out["columns"])
    print(f"=== ROWS (first {max_rows}) ===")
    for row in out["rows"][:max_rows]:
        print(row)
    print("=== SUMMARY ===")
    print(out["summary"])
    logger.info("Decoded %d rows from %s", out["summary"]["rows"], path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
