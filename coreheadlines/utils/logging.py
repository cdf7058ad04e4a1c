"""
CoreHeadlines Logging Configuration
==================================

Console and rotating-file logging for the ingestion run. Context that
identifies a run, a feed or an article travels on LoggerAdapter extras, so
concurrent feed tasks never share mutable logging state.
"""

import logging
import logging.handlers
import sys
import json
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Any, List, Optional


ROOT_LOGGER = "coreheadlines"

# Context keys promoted to top-level fields, in display order
CONTEXT_KEYS = ("run_id", "feed", "guid")

_RECORD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "taskName"}


def _context_of(record: logging.LogRecord) -> Dict[str, Any]:
    return {k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS}


class StructuredFormatter(logging.Formatter):
    """One JSON object per line, used for the log file."""

    def format(self, record: logging.LogRecord) -> str:
        context = _context_of(record)

        entry = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "component": context.pop("component", record.name),
            "msg": record.getMessage(),
        }
        for key in CONTEXT_KEYS:
            if key in context:
                entry[key] = context.pop(key)
        if context:
            entry["context"] = context
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """Human-readable console lines with run context appended as tags."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        level = f"{record.levelname:8}"
        if self.use_color:
            level = f"{self.COLORS.get(record.levelname, '')}{level}{self.RESET}"

        component = getattr(record, "component", record.name)
        line = f"[{stamp}] {level} {component}: {record.getMessage()}"

        tags = [f"{key}={getattr(record, key)}" for key in CONTEXT_KEYS if getattr(record, key, None)]
        if tags:
            line += f" [{' '.join(tags)}]"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _build_handlers(
    log_file: Optional[str],
    enable_console: bool,
    structured_logging: bool,
    max_file_size: int,
    backup_count: int,
) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []

    if enable_console:
        console = logging.StreamHandler(sys.stderr)
        if structured_logging:
            console.setFormatter(StructuredFormatter())
        else:
            console.setFormatter(ColoredConsoleFormatter(use_color=sys.stderr.isatty()))
        handlers.append(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        rotating = logging.handlers.RotatingFileHandler(
            path, maxBytes=max_file_size, backupCount=backup_count, encoding="utf-8"
        )
        rotating.setFormatter(StructuredFormatter())
        handlers.append(rotating)

    return handlers


def configure_application_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = "logs/coreheadlines.log",
    enable_console: bool = True,
    structured_logging: bool = False,
    max_file_size: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> logging.Logger:
    """Install handlers on the ``coreheadlines`` logger.

    Calling it again replaces the previous handlers.

    Args:
        log_level: Level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Rotating JSON log file, or None for console only
        enable_console: Log human-readable lines to stderr
        structured_logging: Use JSON on the console as well
        max_file_size: Rotation threshold in bytes
        backup_count: Rotated files to keep

    Returns:
        The configured application logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, log_level.upper()))

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    for handler in _build_handlers(log_file, enable_console, structured_logging, max_file_size, backup_count):
        logger.addHandler(handler)

    # Chatty dependencies
    for noisy in ("aiohttp", "asyncio", "feedparser"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger


class LoggerAdapter(logging.LoggerAdapter):
    """Adapter whose context is merged into every record's extras."""

    def process(self, msg: Any, kwargs: Dict[str, Any]) -> tuple:
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs

    def bind(self, **context: Any) -> "LoggerAdapter":
        """Child adapter with ``context`` added; None values are ignored."""
        merged = dict(self.extra)
        merged.update((k, v) for k, v in context.items() if v is not None)
        return LoggerAdapter(self.logger, merged)


def get_logger_for_component(
    component_name: str,
    run_id: Optional[str] = None,
    feed: Optional[str] = None,
) -> LoggerAdapter:
    """Adapter for ``coreheadlines.<component_name>`` carrying run context.

    Args:
        component_name: Component name, e.g. 'feed_fetcher' or 'pipeline'
        run_id: Identifier of the pipeline run (optional)
        feed: Feed header the messages relate to (optional)
    """
    adapter = LoggerAdapter(
        logging.getLogger(f"{ROOT_LOGGER}.{component_name}"), {"component": component_name}
    )
    return adapter.bind(run_id=run_id, feed=feed)


class PerformanceLogger:
    """Times a block and logs its outcome; ``duration`` is set on exit."""

    def __init__(self, logger, operation: str, **context):
        self.logger = logger
        self.operation = operation
        self.context = context
        self.duration: Optional[float] = None
        self._started: Optional[float] = None

    def __enter__(self) -> "PerformanceLogger":
        self._started = time.monotonic()
        self.logger.debug(f"Starting {self.operation}", extra=self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.duration = time.monotonic() - self._started
        context = {**self.context, "duration_seconds": round(self.duration, 3)}

        if exc_type is None:
            self.logger.info(f"Completed {self.operation} in {self.duration:.3f}s", extra=context)
        else:
            self.logger.error(f"Failed {self.operation} after {self.duration:.3f}s: {exc_val}", extra=context)
