"""Structured JSON logging (python-json-logger) for the settlement backend"""

import logging
import sys
from pythonjsonlogger.json import JsonFormatter

from settlement.config import settings

_HANDLER_NAME = "settlement"

# Entity ids passed through `extra` that are promoted into every JSON record as strings
ID_FIELDS = (
    "service_id", "closure_id", "invoice_id", "payment_id",
    "transaction_id", "operator_id", "liquidation_id",
)


class SettlementJsonFormatter(JsonFormatter):
    """JSON formatter stamping level, logger, environment, app and currency on each record"""

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)

        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["environment"] = settings.ENVIRONMENT
        log_record["app_name"] = settings.APP_NAME
        log_record["currency"] = settings.CURRENCY

        correlation_id = getattr(record, "correlation_id", None)
        if correlation_id:
            log_record["correlation_id"] = correlation_id

        for field in ID_FIELDS:
            if log_record.get(field) is not None:
                log_record[field] = str(log_record[field])


def build_formatter(log_format: str) -> logging.Formatter:
    if log_format == "json":
        return SettlementJsonFormatter(
            fmt="%(asctime)s %(level)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
        )
    return logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def setup_logging() -> None:
    """Install the stdout handler on the root logger. Safe to call more than once."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper()))

    if any(h.get_name() == _HANDLER_NAME for h in root_logger.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(build_formatter(settings.LOG_FORMAT))
    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    for noisy in ("uvicorn.access", "sqlalchemy.engine", "aiosqlite", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)
