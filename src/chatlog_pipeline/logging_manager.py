"""Structured logging setup for the conversation pipeline.

Provides console logging, an optional JSON Lines run log, and per-run
logger adapters that stamp tier and run id onto every record.
"""

import json
import logging
import logging.handlers
from datetime import datetime
from pathlib import Path
from typing import Any

ROOT_LOGGER = "chatlog_pipeline"

# Attributes every LogRecord carries; anything else came in through ``extra``.
_STANDARD_ATTRS = frozenset(
    [
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "exc_info",
        "exc_text",
        "stack_info",
        "asctime",
        "taskName",
        "extras",
    ]
)


def record_extras(record: logging.LogRecord) -> dict[str, Any]:
    """Collect the ``extra`` fields of a log record as JSON-safe values."""
    extras: dict[str, Any] = {}
    for key, value in record.__dict__.items():
        if key in _STANDARD_ATTRS:
            continue
        try:
            json.dumps(value)
            extras[key] = value
        except (TypeError, ValueError):
            extras[key] = str(value)
    return extras


class JsonExtraFilter(logging.Filter):
    """Attach the record's extra fields as ``record.extras``."""

    def filter(self, record):
        record.extras = record_extras(record)
        return True


class JsonLineFormatter(logging.Formatter):
    """One JSON object per line, including the extras set by JsonExtraFilter."""

    def format(self, record):
        log_obj = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        log_obj.update(getattr(record, "extras", {}))
        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_obj)


class PipelineLoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds run context to all log messages."""

    def process(self, msg, kwargs):
        """Merge the adapter's context into the call's ``extra``."""
        extra = kwargs.get("extra", {})
        extra.update(self.extra)
        kwargs["extra"] = extra
        return msg, kwargs


def get_run_logger(name: str, tier: str, run_id: str) -> PipelineLoggerAdapter:
    """Get a logger whose records carry ``tier`` and ``run_id``."""
    return PipelineLoggerAdapter(logging.getLogger(name), {"tier": tier, "run_id": run_id})


def configure_logging(log_level: str = "INFO", log_file: str | Path | None = None) -> logging.Logger:
    """Configure the package logger with console and optional file handlers.

    Args:
        log_level: Console log level name
        log_file: Path for a rotating JSON Lines log; omitted when None

    Returns:
        The configured package logger

    Raises:
        ValueError: If log_level is not a known level name
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    # Console handler - human readable
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(console_handler)

    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            path,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
        )
        file_handler.setLevel(logging.DEBUG)  # Capture everything to file
        file_handler.addFilter(JsonExtraFilter())
        file_handler.setFormatter(JsonLineFormatter())
        logger.addHandler(file_handler)

    logger.debug(
        "Logging configured",
        extra={"log_level": log_level.upper(), "log_file": str(log_file) if log_file else None},
    )
    return logger
