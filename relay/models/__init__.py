"""Domain models: events and routing configuration."""
from relay.models.event import Event, EventDecodeError, decode_event
from relay.models.routing import (
    ALLOWED_HTTP_METHODS,
    DEFAULT_MAX_RETRIES,
    MQConfig,
    RelayConfig,
    RoutingRule,
)

__all__ = [
    "Event",
    "EventDecodeError",
    "decode_event",
    "ALLOWED_HTTP_METHODS",
    "DEFAULT_MAX_RETRIES",
    "MQConfig",
    "RelayConfig",
    "RoutingRule",
]
