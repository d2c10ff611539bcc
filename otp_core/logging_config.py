"""
Structured Logging
==================
structlog configuration for services embedding the OTP engine.

Usage:
    from otp_core.logging_config import configure_logging

    configure_logging(service_name="otp-service", level="INFO")
"""

import logging
import sys
from typing import Any, MutableMapping

import structlog

PHONE_FIELDS = ("phone", "phone_number", "to")


def mask_phone(phone: str) -> str:
    """Redact a phone number to its prefix and last three digits."""
    if not phone:
        return "***"
    if len(phone) <= 7:
        return "*" * len(phone)
    return phone[:4] + "*" * (len(phone) - 7) + phone[-3:]


def mask_phone_numbers(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor that redacts phone number fields."""
    for key in PHONE_FIELDS:
        value = event_dict.get(key)
        if isinstance(value, str):
            event_dict[key] = mask_phone(value)
    return event_dict


def configure_logging(
    service_name: str,
    level: str = "INFO",
    json_output: bool = True,
) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        service_name: Name bound to every log line
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Render JSON (production) instead of console output
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
        force=True,
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            mask_phone_numbers,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=service_name)
    structlog.get_logger(__name__).info("Logging configured", service=service_name)
