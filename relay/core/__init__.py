"""Consumption-and-delivery pipeline."""
from relay.core.renderer import render, render_body, resolve_placeholder
from relay.core.delivery import (
    DeliveryError,
    DeliveryExecutor,
    DeliveryResult,
    TerminalDeliveryError,
    backoff_delay,
    build_client,
)
from relay.core.dead_letter import DeadLetterError, DeadLetterEscalator, dead_letter_topic
from relay.core.handler import MessageHandler

__all__ = [
    "render",
    "render_body",
    "resolve_placeholder",
    "DeliveryError",
    "DeliveryExecutor",
    "DeliveryResult",
    "TerminalDeliveryError",
    "backoff_delay",
    "build_client",
    "DeadLetterError",
    "DeadLetterEscalator",
    "dead_letter_topic",
    "MessageHandler",
]
