import io
import os

import pytest

from csv_errors import ConfigurationError
from csv_reader import parse_text
from csv_writer import CsvWriter, format_row


@pytest.mark.parametrize(
    "values,expected",
    [
        (["a", "b"], "a,b"),
        (["a", "", None, "d"], "a,,,d"),
        (['a"b'], '"a""b"'),
        (['"'], '""""'),
        (["a,b"], '"a,b"'),
        (["a\nb"], '"a\nb"'),
        (["a\r"], '"a\r"'),
        (["a\0"], '"a\0"'),
        ([], ""),
    ],
)
def test_format_row(values, expected):
    assert format_row(values) == expected


def test_default_terminator_is_platform_line_separator():
    out = io.StringIO()
    CsvWriter(out).write_row(["x", "y"])
    assert out.getvalue() == "x,y" + os.linesep


def test_custom_dialect():
    assert format_row(["a;b", "c'd", 'e"f'], delimiter=";", quote="'") == "'a;b';'c''d';e\"f"


def test_write_rows_counts_records():
    out = io.StringIO()
    writer = CsvWriter(out, line_terminator="\n")
    writer.write_rows([["h1", "h2"], ["1", "2"]])
    assert out.getvalue() == "h1,h2\n1,2\n"
    assert writer.rows_written == 2


def test_invalid_dialect():
    with pytest.raises(ConfigurationError):
        CsvWriter(io.StringIO(), ",", ",")


@pytest.mark.parametrize(
    "value",
    [
        "plain",
        "with space",
        "",
        'a"b',
        '"',
        '""',
        '"leading',
        "x,y",
        "multi\nline",
        "cr\r\nlf",
        "'single'",
    ],
)
def test_written_values_read_back_unchanged(value):
    out = io.StringIO()
    CsvWriter(out, line_terminator="\n").write_rows([["v", "end"], [value, "end"]])
    rows = parse_text(out.getvalue())["rows"]
    assert rows == [{"v": value, "end": "end"}]
