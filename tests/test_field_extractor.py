import pytest

from csv_errors import ConfigurationError, MalformedQuotingError
from csv_reader import FieldExtractor, TextBuffer


def _read(line, offset=0, extractor=None):
    extractor = extractor or FieldExtractor()
    value = TextBuffer()
    found, next_offset = extractor.read_field(line, offset, value)
    return found, str(value), next_offset


@pytest.mark.parametrize(
    "line,expected",
    [
        ("abc", "abc"),
        ('"a""b"', 'a"b'),
        ('"a,b",c', "a,b"),
        ('""', ""),
        ('""""', '"'),
        ('"a"""', 'a"'),
        ('"a""""",x', 'a""'),
        ('ab"c,d', 'ab"c'),
        ('"a\r\nb",c', "a\r\nb"),
        ("a\0b", "ab"),
        ('"a\0b"', "ab"),
    ],
)
def test_first_field_value(line, expected):
    found, value, _ = _read(line)
    assert found is True
    assert value == expected


def test_offsets_walk_fields():
    line = "a,b"
    assert _read(line, 0) == (True, "a", 2)
    assert _read(line, 2) == (True, "b", 4)
    assert _read(line, 4) == (False, "", 4)


def test_quoted_field_offset_skips_delimiter():
    assert _read('"a,b",c') == (True, "a,b", 6)
    assert _read('"a,b",c', 6) == (True, "c", 8)


def test_empty_fields_around_delimiters():
    assert _read(",") == (True, "", 1)
    # trailing empty field after the last delimiter
    assert _read(",", 1) == (True, "", 2)
    assert _read(",", 2) == (False, "", 2)
    assert _read("a,", 2) == (True, "", 3)


def test_empty_line_has_no_field():
    found, value, _ = _read("")
    assert found is False
    assert value == ""


def test_value_buffer_is_not_cleared():
    value = TextBuffer("x")
    FieldExtractor().read_field("y", 0, value)
    assert value == "xy"


def test_accepts_text_buffer_line():
    found, value, offset = _read(TextBuffer('"q""",z'))
    assert (found, value, offset) == (True, 'q"', 6)


@pytest.mark.parametrize(
    "line",
    [
        '"abc',
        '"ab""',
        '"ab"c,d',
        '"a"b"',
        '"a" ,b',
    ],
)
def test_malformed_quoting(line):
    with pytest.raises(MalformedQuotingError):
        _read(line)


def test_negative_offset_is_rejected():
    with pytest.raises(ValueError):
        FieldExtractor().read_field("a", -1, TextBuffer())


def test_custom_dialect():
    extractor = FieldExtractor(";", "'")
    assert _read("'a;b';c", extractor=extractor) == (True, "a;b", 6)
    # the default quote is ordinary text here
    assert _read('"x";y', extractor=extractor) == (True, '"x"', 4)


@pytest.mark.parametrize("delimiter,quote", [(",", ","), ("\n", '"'), (",", "\0"), (",,", '"')])
def test_invalid_dialect(delimiter, quote):
    with pytest.raises(ConfigurationError):
        FieldExtractor(delimiter, quote)


def test_text_buffer_string_is_cached_until_mutation():
    line = TextBuffer("a,b")
    first = str(line)
    assert str(line) is first
    line.append(",")
    assert str(line) == "a,b,"
    line.clear()
    assert str(line) == ""
    line.extend("x,y")
    assert str(line) == "x,y"


def test_walks_every_field_of_text_buffer_line():
    line = TextBuffer('1,"two, 2",,"4"""')
    extractor = FieldExtractor()
    fields = []
    offset = 0
    while True:
        value = TextBuffer()
        found, offset = extractor.read_field(line, offset, value)
        if not found:
            break
        fields.append(str(value))
    assert fields == ["1", "two, 2", "", '4"']
    assert offset == len(line) + 1
