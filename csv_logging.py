"""
Logging configuration with optional structured JSON output and context support
"""
import json
import logging
import sys
from contextvars import ContextVar
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

from csv_settings import get_settings

ROOT_LOGGER = "streamcsv"

# Library default: silent until the host or configure() adds handlers
logging.getLogger(ROOT_LOGGER).addHandler(logging.NullHandler())

# Context merged into every JSON record (e.g. the source being decoded)
log_context: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})

_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__
) | {"message", "asctime", "taskName"}


class ContextualFormatter(logging.Formatter):
    """JSON formatter with context support"""

    def __init__(self, *args, **kwargs):
        kwargs.pop("fmt", None)
        super().__init__(*args, **kwargs)

    def format(self, record: logging.LogRecord) -> str:
        log_dict = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        ctx = log_context.get({})
        if ctx:
            log_dict.update(ctx)

        if record.exc_info:
            log_dict["exception"] = self.formatException(record.exc_info)

        # extra= fields
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS:
                continue
            try:
                json.dumps(value)
                log_dict[key] = value
            except (TypeError, ValueError):
                log_dict[key] = str(value)

        return json.dumps(log_dict, ensure_ascii=False, default=str)


class LoggingConfig:
    """Centralized logging configuration driven by ReaderSettings"""

    _configured = False
    _module_levels: Dict[str, str] = {}
    _handlers: List[logging.Handler] = []

    @classmethod
    def configure(cls, module_levels: Optional[Dict[str, str]] = None):
        """Configure logging for the project's modules"""
        if cls._configured:
            return

        settings = get_settings()

        default_levels = {ROOT_LOGGER: settings.log_level}
        if module_levels:
            default_levels.update(
                {cls._qualify(module): level for module, level in module_levels.items()}
            )
        cls._module_levels = default_levels

        if settings.log_format == "json":
            formatter = ContextualFormatter(datefmt="%Y-%m-%d %H:%M:%S")
        else:
            formatter = logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )

        handlers = []

        # stdout carries decoded data in the CLI, so logs go to stderr
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

        if settings.log_file_enabled:
            log_path = Path(settings.log_file_path)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = TimedRotatingFileHandler(
                filename=str(log_path),
                when="midnight",
                interval=1,
                backupCount=settings.log_file_retention,
                encoding="utf-8",
            )
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)

        # records stop at the project logger once it has its own handlers
        project_logger = logging.getLogger(ROOT_LOGGER)
        for handler in handlers:
            project_logger.addHandler(handler)
        project_logger.propagate = False

        for module, level in default_levels.items():
            logging.getLogger(module).setLevel(getattr(logging, level.upper()))

        cls._handlers = handlers
        cls._configured = True

    @classmethod
    def reset(cls):
        """Undo configure(): drop its handlers and levels, propagate to the host again"""
        project_logger = logging.getLogger(ROOT_LOGGER)
        for handler in cls._handlers:
            project_logger.removeHandler(handler)
            handler.close()
        project_logger.propagate = True
        for module in cls._module_levels:
            logging.getLogger(module).setLevel(logging.NOTSET)
        cls._handlers = []
        cls._module_levels = {}
        cls._configured = False

    @staticmethod
    def _qualify(name: str) -> str:
        if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
            return name
        return f"{ROOT_LOGGER}.{name}"

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Get a logger for a module, nested under the project logger. Does not configure."""
        return logging.getLogger(cls._qualify(name))

    @classmethod
    def get_module_level(cls, module: str) -> str:
        logger = logging.getLogger(cls._qualify(module))
        return logging.getLevelName(logger.getEffectiveLevel())

    @classmethod
    def set_module_level(cls, module: str, level: str):
        module = cls._qualify(module)
        logging.getLogger(module).setLevel(getattr(logging, level.upper()))
        cls._module_levels[module] = level

    @classmethod
    def set_context(cls, **kwargs):
        """Set context variables for logging"""
        ctx = log_context.get({}).copy()
        ctx.update(kwargs)
        log_context.set(ctx)

    @classmethod
    def clear_context(cls):
        log_context.set({})
