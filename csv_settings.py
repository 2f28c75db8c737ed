"""
Configuration management using Pydantic Settings
"""
import sys
from functools import lru_cache
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv
from pydantic import Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from csv_errors import ConfigurationError

FORBIDDEN_DIALECT_CHARS = ("\0", "\r", "\n")


def load_env_file(path: Optional[Union[str, Path]] = None) -> bool:
    """
    Load STREAMCSV_* variables from a .env file (default: working directory).
    Applications call this explicitly; the real environment wins over the file.
    """
    env_file = Path(path) if path is not None else Path.cwd() / ".env"
    if not env_file.exists():
        return False
    load_dotenv(env_file, override=False)
    get_settings.cache_clear()
    return True


def validate_dialect(delimiter: str, quote: str) -> None:
    """Raise ConfigurationError unless delimiter/quote form a usable dialect."""
    for name, ch in (("delimiter", delimiter), ("quote", quote)):
        if not isinstance(ch, str) or len(ch) != 1:
            raise ConfigurationError(f"{name.capitalize()} must be a single character, got {ch!r}")
    if delimiter == quote:
        raise ConfigurationError("Delimiter and quote characters cannot be the same")
    if delimiter in FORBIDDEN_DIALECT_CHARS:
        raise ConfigurationError("Delimiter cannot be a null character, CR or LF")
    if quote in FORBIDDEN_DIALECT_CHARS:
        raise ConfigurationError("Quote cannot be a null character, CR or LF")


def validate_limit(name: str, value: int) -> int:
    """Limits must be integers >= 1."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")
    if value < 1:
        raise ConfigurationError(f"{name} must be at least 1")
    return value


class ReaderSettings(BaseSettings):
    """Reader/writer settings, overridable through STREAMCSV_* variables"""

    # Dialect
    delimiter: str = Field(default=",", description="Field delimiter character")
    quote: str = Field(default='"', description="Quote character protecting delimiters and line breaks")

    # Limits
    max_line_length: int = Field(default=sys.maxsize, description="Max characters in one logical line")
    max_char_count: int = Field(default=sys.maxsize, description="Max characters read from one stream")
    read_block_size: int = Field(default=10000, description="Characters requested per read() call")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="text", description="Log format: 'json' or 'text'")
    log_file_enabled: bool = Field(default=False, description="Enable file logging")
    log_file_path: str = Field(default="logs/streamcsv.log", description="Path to log file")
    log_file_retention: int = Field(default=7, ge=0, description="Number of rotated log files to keep")

    @field_validator("max_line_length", "max_char_count", "read_block_size")
    @classmethod
    def check_limits(cls, v, info):
        return validate_limit(info.field_name, v)

    @field_validator("log_format")
    @classmethod
    def check_log_format(cls, v):
        v = v.lower()
        if v not in ("json", "text"):
            raise ConfigurationError(f"log_format must be 'json' or 'text', got {v!r}")
        return v

    @model_validator(mode="after")
    def check_dialect(self):
        validate_dialect(self.delimiter, self.quote)
        return self

    model_config = SettingsConfigDict(
        env_prefix="STREAMCSV_",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
    )


@lru_cache()
def get_settings() -> ReaderSettings:
    """Get cached settings instance; bad STREAMCSV_* values raise ConfigurationError"""
    try:
        return ReaderSettings()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid STREAMCSV_* settings: {e}") from e
