"""
Event Model

A business occurrence decoded from a queue message body. Immutable once
decoded; ``type`` selects the routing rule and ``id`` is used only for
log correlation.
"""
import datetime as dt
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class EventDecodeError(Exception):
    """Raised when a message body cannot be decoded into an Event."""
    pass


class Event(BaseModel):
    """
    Inbound business event.

    Attributes:
        id: Event identifier (correlation only, never used for deduplication)
        type: Event type, matched exactly against routing rules
        timestamp: When the event happened, set by the producer
        data: Field map referenced by body templates
    """
    model_config = ConfigDict(frozen=True)

    id: str = ""
    type: str = ""
    timestamp: Optional[dt.datetime] = None
    data: dict[str, Any] = Field(default_factory=dict)

    @field_validator("data", mode="before")
    @classmethod
    def null_data_is_empty(cls, value: Any) -> Any:
        return {} if value is None else value


def decode_event(body: bytes) -> Event:
    """
    Decode a raw message body.

    Args:
        body: JSON-encoded event bytes

    Returns:
        Decoded event

    Raises:
        EventDecodeError: If the body is not a JSON object matching the Event shape
    """
    try:
        return Event.model_validate_json(body)
    except ValidationError as e:
        raise EventDecodeError(str(e)) from e
