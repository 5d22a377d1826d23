"""Structured logging configuration with multiple output streams."""

import logging
import logging.handlers
from pathlib import Path

import structlog

from weightedindex.config import LoggingConfig

LEDGER_LOGGER = "weightedindex.ledger"
REBALANCE_LOGGER = "weightedindex.rebalances"


def configure_logging(config: LoggingConfig) -> None:
    """Set up structured logging with console + file outputs."""
    for log_path in [config.app_log, config.ledger_log, config.rebalance_log]:
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
        processor=structlog.processors.JSONRenderer(),
        foreign_pre_chain=shared_processors,
    )

    console_formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.dev.ConsoleRenderer(colors=True),
        foreign_pre_chain=shared_processors,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, config.level.upper()))

    # Alpaca and redis clients log request URLs at DEBUG
    for noisy_logger in ["urllib3", "alpaca", "redis"]:
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    app_handler = logging.handlers.RotatingFileHandler(
        config.app_log,
        maxBytes=config.max_bytes,
        backupCount=config.backup_count,
    )
    app_handler.setFormatter(json_formatter)
    root_logger.addHandler(app_handler)

    # Share mint/burn audit trail
    _add_stream(LEDGER_LOGGER, config.ledger_log, config, json_formatter)

    # Price refresh and weight changes
    _add_stream(REBALANCE_LOGGER, config.rebalance_log, config, json_formatter)


def _add_stream(
    name: str,
    path: str,
    config: LoggingConfig,
    formatter: logging.Formatter,
) -> None:
    stream_logger = logging.getLogger(name)
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=config.max_bytes,
        backupCount=config.backup_count,
    )
    handler.setFormatter(formatter)
    stream_logger.addHandler(handler)
    stream_logger.propagate = True


def get_ledger_logger() -> structlog.stdlib.BoundLogger:
    """Get the share-ledger logger."""
    return structlog.get_logger(LEDGER_LOGGER)


def get_rebalance_logger() -> structlog.stdlib.BoundLogger:
    """Get the rebalance-decision logger."""
    return structlog.get_logger(REBALANCE_LOGGER)
