"""
Pydantic models for the event ingestion endpoint.
"""
import datetime as dt
import uuid
from typing import Any, Optional
from pydantic import BaseModel, Field

from relay.models.event import Event


class EventIngestRequest(BaseModel):
    """
    Event submitted by a producer.

    Only ``type`` is mandatory; the rest is filled in before publishing.
    """
    id: Optional[str] = Field(None, description="Event ID, generated when absent")
    type: str = Field(..., min_length=1, description="Event type, must have a routing rule")
    timestamp: Optional[dt.datetime] = Field(None, description="Event time, defaults to receipt time")
    data: Optional[dict[str, Any]] = Field(None, description="Field map available to body templates")

    def to_event(self) -> Event:
        """Build the queued event, filling in ID and timestamp."""
        return Event(
            id=self.id or str(uuid.uuid4()),
            type=self.type,
            timestamp=self.timestamp or dt.datetime.now(dt.UTC),
            data=self.data or {},
        )
