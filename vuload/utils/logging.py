"""Logging configuration for the load engine."""

# Standard library imports
import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

# Third-party imports
import structlog

# Local application imports
from .._version import __version__
from ..config import LoggingConfig, settings


def setup_logging(config: Optional[LoggingConfig] = None) -> None:
    """Configure structured logging for the engine."""
    config = config or settings.logging
    level = getattr(logging, config.level.upper(), logging.INFO)

    # Configure standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=level,
        force=True,
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        add_service_context,
    ]

    if config.format.lower() == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if config.file:
        setup_file_logging(config)

    configure_third_party_loggers()


def setup_file_logging(config: LoggingConfig) -> None:
    """Setup file-based logging with rotation."""
    if not config.file:
        return

    log_file_path = Path(config.file)
    log_file_path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.handlers.RotatingFileHandler(
        filename=log_file_path,
        maxBytes=config.max_size_mb * 1024 * 1024,
        backupCount=config.backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(logging.Formatter("%(message)s"))
    file_handler.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    logging.getLogger().addHandler(file_handler)


def configure_third_party_loggers() -> None:
    """Configure logging levels for third-party libraries."""
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def add_service_context(logger, method_name, event_dict):
    """Add service context information to log entries."""
    event_dict["service"] = "vuload"
    event_dict["version"] = __version__
    return event_dict
