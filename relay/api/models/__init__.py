"""API request models."""
from relay.api.models.events import EventIngestRequest

__all__ = ["EventIngestRequest"]
