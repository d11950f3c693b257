"""
Logging configuration for the reconciliation service.

On Cloud Run the root logger is routed to Google Cloud Logging; locally a
plain stdout handler is installed. Structured context is passed through the
``json_fields`` extra so both destinations render it.
"""

import json
import logging
import os
import sys
from typing import Any

# Flag to track if logging is already configured
_logging_configured = False


class LocalFormatter(logging.Formatter):
    """Formatter that appends the json_fields extra to the message."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)

        json_fields = getattr(record, "json_fields", None)
        if json_fields:
            fields_str = json.dumps(
                json_fields, ensure_ascii=False, sort_keys=True, default=str
            )
            message = f"{message} {fields_str}"

        return message


def log_fields(**fields: Any) -> dict[str, Any]:
    """
    Build the ``extra`` mapping for a structured log call.

    Example:
        logger.info("Order delivered", extra=log_fields(order_id=order.id))
    """
    return {"json_fields": fields}


def setup_logging(service_name: str = "parcelwatch", level: int | None = None):
    """
    Configure logging once per process.

    Args:
        service_name: Name of the service for log identification
        level: Root log level (defaults to LOG_LEVEL env var or INFO)
    """
    global _logging_configured

    if _logging_configured:
        return

    if level is None:
        level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
        if not isinstance(level, int):
            level = logging.INFO

    # Cloud Run sets K_SERVICE
    if os.getenv("K_SERVICE"):
        _setup_cloud_logging(service_name, level)
    else:
        _setup_local_logging(level)

    # Scheduler chatter is noisy at INFO
    logging.getLogger("apscheduler").setLevel(logging.WARNING)

    _logging_configured = True


def _setup_cloud_logging(service_name: str, level: int):
    """Route the root logger to Cloud Logging."""
    try:
        import google.cloud.logging

        client = google.cloud.logging.Client()
        client.setup_logging(log_level=level)

        logging.info("Cloud Logging configured for service: %s", service_name)
    except Exception as e:
        # Fall back to local logging if Cloud Logging setup fails
        _setup_local_logging(level)
        logging.warning("Failed to setup Cloud Logging, using local logging: %s", e)


def _setup_local_logging(level: int):
    """Configure a stdout handler for local runs."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        LocalFormatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.addHandler(handler)
