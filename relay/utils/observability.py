"""
Structured Logging & Observability
Logging that's both human-readable and machine-parseable.
"""
import sys
from loguru import logger
from typing import Any
from relay.config import get_settings


def configure_logging():
    """
    Configure loguru for the relay service.

    In development: Human-readable colorized output
    In production: Structured JSON logs for ingestion (ELK, Datadog, etc.)
    """
    settings = get_settings()

    # Remove default handler
    logger.remove()

    if not settings.enable_structured_logging:
        logger.add(
            sys.stderr,
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
                "{message}"
            ),
            level=settings.log_level,
            colorize=True,
        )
    else:
        logger.add(
            sys.stderr,
            format="{message}",
            level=settings.log_level,
            serialize=True,  # Output as JSON
        )

    logger.info(f"Logging configured: level={settings.log_level}, structured={settings.enable_structured_logging}")


def log_delivery_outcome(
    event_id: str,
    event_type: str,
    url: str,
    attempts: int,
    duration_ms: float,
    status_code: int | None = None,
    error: str | None = None,
    terminal: bool = False,
    **context: Any
):
    """
    Structured logging for outbound notification deliveries.

    Args:
        event_id: Event being delivered (correlation only)
        event_type: Routing key of the event
        url: Target URL from the routing rule
        attempts: Attempts made, including the first
        duration_ms: Time spent across all attempts, sleeps included
        status_code: Last HTTP status received, if any
        error: Error message if the delivery failed
        terminal: Whether the failure was a non-retryable client error
        **context: Additional context

    Example:
        >>> log_delivery_outcome(
        ...     event_id="evt-1",
        ...     event_type="registration",
        ...     url="https://api.example.com/users",
        ...     attempts=2,
        ...     duration_ms=234.5,
        ...     status_code=201,
        ... )
    """
    log_data = {
        "event_type": "delivery",
        "event_id": event_id,
        "routing_key": event_type,
        "url": url,
        "attempts": attempts,
        "duration_ms": round(duration_ms, 2),
        "success": error is None,
    }

    if status_code is not None:
        log_data["status_code"] = status_code
    if error:
        log_data["error"] = error
        log_data["terminal"] = terminal

    log_data.update(context)

    if error is None:
        logger.bind(**log_data).info(
            f"Notification delivered | {event_type} -> {url} | {attempts} attempt(s)"
        )
    else:
        logger.bind(**log_data).error(
            f"Notification failed | {event_type} -> {url} | {attempts} attempt(s)"
        )
