"""Structured logging for fetch jobs: console, application log and alert log."""

import logging
import logging.handlers
import sys
from pathlib import Path

import structlog

from ratingtracker.config import LoggingConfig

ALERT_LOGGER = "ratingtracker.alerts"

# Prefix of the handler names installed here, so reconfiguring replaces them
_HANDLER_PREFIX = "ratingtracker."


def _rotating_handler(
    path: str, config: LoggingConfig, formatter: logging.Formatter, name: str
) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=config.max_bytes,
        backupCount=config.backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(formatter)
    handler.set_name(_HANDLER_PREFIX + name)
    return handler


def _replace_handlers(logger: logging.Logger, *handlers: logging.Handler) -> None:
    for existing in list(logger.handlers):
        if (existing.get_name() or "").startswith(_HANDLER_PREFIX):
            logger.removeHandler(existing)
            existing.close()
    for handler in handlers:
        logger.addHandler(handler)


def configure_logging(config: LoggingConfig) -> None:
    """Route structlog through stdlib logging.

    Everything goes to the console and to the rotating JSON application log.
    Messages sent to subscribers are additionally kept in the alert log.
    Calling this again replaces the handlers installed before.
    """
    for log_path in (config.app_log, config.alert_log):
        Path(log_path).parent.mkdir(parents=True, exist_ok=True)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    json_formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer(ensure_ascii=False),
        foreign_pre_chain=shared_processors,
    )
    # Colors only when someone is watching; cron output ends up in files
    console_formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        foreign_pre_chain=shared_processors,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, config.level.upper()))

    # urllib3 logs full request URLs, including provider identifiers, at DEBUG
    for noisy_logger in ("urllib3", "requests"):
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(console_formatter)
    console_handler.set_name(_HANDLER_PREFIX + "console")
    _replace_handlers(
        root_logger,
        console_handler,
        _rotating_handler(config.app_log, config, json_formatter, "app"),
    )

    # Alerts also propagate to the application log
    alert_logger = logging.getLogger(ALERT_LOGGER)
    _replace_handlers(
        alert_logger,
        _rotating_handler(config.alert_log, config, json_formatter, "alerts"),
    )
    alert_logger.propagate = True


def get_alert_logger() -> structlog.stdlib.BoundLogger:
    """Get the logger recording outbound messages."""
    return structlog.get_logger(ALERT_LOGGER)
