"""Structured logging configuration using structlog.

Why this exists:
- Consistent key/value events across registry, cache and gateway
- Console output for development, JSON output for log shippers
- Optional daily-rotating file output with retention

How to use:
    from ragservice.observability.logging import get_logger

    logger = get_logger(__name__)
    logger.info("documents_added", knowledge_base="docs", count=3)
"""

import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

from ragservice.config.schema import LoggingConfig


class TimedRotatingFileHandler(logging.handlers.TimedRotatingFileHandler):
    """Midnight-rotating file handler that prunes files older than max_days."""

    def __init__(self, filename: str, max_days: int = 30, **kwargs):
        super().__init__(filename, when="midnight", interval=1, **kwargs)
        self.max_days = max_days

    def doRollover(self) -> None:
        super().doRollover()
        self._cleanup_old_files()

    def _cleanup_old_files(self) -> None:
        """Remove rotated log files older than max_days."""
        base_dir, base_name = os.path.split(self.baseFilename)
        cutoff_time = datetime.now(timezone.utc).timestamp() - (self.max_days * 86400)

        for filename in os.listdir(base_dir):
            if not filename.startswith(base_name + "."):
                continue
            file_path = os.path.join(base_dir, filename)
            try:
                if os.path.getmtime(file_path) < cutoff_time:
                    os.remove(file_path)
            except FileNotFoundError:
                continue


def add_app_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Add application context to log events."""
    event_dict["app"] = "ragservice"
    return event_dict


def configure_logging(
    level: str = "INFO",
    json_logs: bool = False,
    log_dir: Optional[Path] = None,
    max_days: int = 30,
    enable_file: bool = False,
) -> None:
    """Configure structured logging for the service.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: If True, output logs as JSON; otherwise use console format
        log_dir: Directory for log files (file logging needs enable_file too)
        max_days: Number of days to retain log files
        enable_file: Whether to enable file logging
    """
    numeric_level = getattr(logging, level.upper())

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_app_context,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    if enable_file and log_dir:
        log_dir.mkdir(parents=True, exist_ok=True)

        root_logger = logging.getLogger()
        root_logger.setLevel(numeric_level)
        for handler in root_logger.handlers[:]:
            if isinstance(handler, logging.FileHandler):
                root_logger.removeHandler(handler)

        file_handler = TimedRotatingFileHandler(
            str(log_dir / "ragservice.log"),
            max_days=max_days,
            encoding="utf-8",
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        root_logger.addHandler(file_handler)

        if not any(
            isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)
            for h in root_logger.handlers
        ):
            console_handler = logging.StreamHandler(sys.stderr)
            console_handler.setFormatter(logging.Formatter("%(message)s"))
            root_logger.addHandler(console_handler)

        logger_factory: Any = structlog.stdlib.LoggerFactory()
    else:
        logger_factory = structlog.PrintLoggerFactory(file=sys.stderr)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=logger_factory,
        cache_logger_on_first_use=True,
    )


def configure_from_config(config: LoggingConfig, debug: bool = False) -> None:
    """Configure logging from a LoggingConfig object.

    Args:
        config: Logging configuration
        debug: Force DEBUG level regardless of the configured level
    """
    configure_logging(
        level="DEBUG" if debug else config.level.value,
        json_logs=config.json_logs,
        log_dir=config.log_dir,
        max_days=config.max_days,
        enable_file=config.enable_file,
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a logger instance for a module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)
