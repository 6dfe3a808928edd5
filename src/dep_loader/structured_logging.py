"""
Structured logging configuration for dep-loader.

Provides consistent, machine-readable logging for graph loading and
symbol/resource resolution events.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict

_RECORD_FIELDS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "getMessage",
    "exc_info",
    "exc_text",
    "stack_info",
}


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "event_type": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RECORD_FIELDS:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


class LoaderLogger:
    """Structured logger for loader events."""

    def __init__(self, name: str):
        self.logger = logging.getLogger(f"dep_loader.{name}")
        self._handler = logging.StreamHandler(sys.stderr)
        self._setup_logger()

    def _setup_logger(self) -> None:
        """Setup logger with structured formatting."""
        if not self.logger.handlers:
            self._handler.setFormatter(StructuredFormatter())
            self.logger.addHandler(self._handler)
            self.logger.setLevel(logging.WARNING)
            self.logger.propagate = False

    def use_json(self, enabled: bool, log_format: str) -> None:
        if enabled:
            self._handler.setFormatter(StructuredFormatter())
        else:
            self._handler.setFormatter(logging.Formatter(log_format))

    def _log(self, level: int, event_type: str, **kwargs: Any) -> None:
        if self.logger.isEnabledFor(level):
            self.logger.log(level, event_type, extra=kwargs)

    def info(self, event_type: str, **kwargs: Any) -> None:
        """Log info level event."""
        self._log(logging.INFO, event_type, **kwargs)

    def warning(self, event_type: str, **kwargs: Any) -> None:
        """Log warning level event."""
        self._log(logging.WARNING, event_type, **kwargs)

    def error(self, event_type: str, **kwargs: Any) -> None:
        """Log error level event."""
        self._log(logging.ERROR, event_type, **kwargs)

    def debug(self, event_type: str, **kwargs: Any) -> None:
        """Log debug level event."""
        self._log(logging.DEBUG, event_type, **kwargs)


_graph_logger = LoaderLogger("graph")
_resolution_logger = LoaderLogger("resolution")


def get_graph_logger() -> LoaderLogger:
    """Get graph construction and traversal logger."""
    return _graph_logger


def get_resolution_logger() -> LoaderLogger:
    """Get symbol and resource resolution logger."""
    return _resolution_logger


def log_graph_loaded(graph_file: str, package_count: int, root_count: int) -> None:
    """Log a graph description file being turned into loaders."""
    _graph_logger.info(
        "graph_loaded",
        graph_file=graph_file,
        package_count=package_count,
        root_count=root_count,
    )


def log_classpath_built(source: str, entries: int) -> None:
    _graph_logger.debug("classpath_built", source=source, entries=entries)


def log_symbol_resolved(source: str, symbol: str, origin: Any) -> None:
    _resolution_logger.debug(
        "symbol_resolved", source=source, symbol=symbol, origin=origin
    )


def log_missing_dependency(source: str, symbol: str) -> None:
    _resolution_logger.debug("missing_dependency", source=source, symbol=symbol)


def log_resource_lookup(source: str, resource: str, found: bool) -> None:
    _resolution_logger.debug(
        "resource_lookup", source=source, resource=resource, found=found
    )


def configure_logging(
    log_level: str = "WARNING",
    enable_json: bool = True,
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
) -> None:
    """Configure logging for the application."""
    level = getattr(logging, log_level.upper(), logging.WARNING)

    for logger in (_graph_logger, _resolution_logger):
        logger.logger.setLevel(level)
        logger.use_json(enable_json, log_format)


def describe_loggers() -> Dict[str, str]:
    """Effective level of each structured logger, keyed by logger name."""
    return {
        logger.logger.name: logging.getLevelName(logger.logger.getEffectiveLevel())
        for logger in (_graph_logger, _resolution_logger)
    }
