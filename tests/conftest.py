"""
Pytest configuration and fixtures
"""
import os
import sys
from pathlib import Path

import pytest

# Project root holds the modules; make them importable without installing
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from csv_logging import LoggingConfig  # noqa: E402
from csv_reader import CsvReader, TextBuffer  # noqa: E402
from csv_settings import get_settings  # noqa: E402


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Every test starts from default settings, whatever the shell exports."""
    for name in list(os.environ):
        if name.upper().startswith("STREAMCSV_"):
            monkeypatch.delenv(name)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo handlers the CLI installs so library tests see host-owned logging."""
    yield
    LoggingConfig.reset()


@pytest.fixture
def decode():
    """Decode header + rows; returns (columns, list of row value lists)."""

    def _decode(source, **options):
        reader = CsvReader(**options)
        line = TextBuffer()
        rows = []
        for _ in reader.consume_lines(source, line):
            if not reader.has_header:
                reader.parse_header(line)
                continue
            reader.parse_line(line)
            rows.append(reader.values())
        return list(reader.columns), rows

    return _decode
