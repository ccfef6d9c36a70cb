"""
Base Queue Interface

Abstract broker interface with redelivery counting and metrics.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class Disposition(str, Enum):
    """Handler verdict returned to the broker for a delivered batch."""
    ACKNOWLEDGE = "acknowledge"
    RETRY_LATER = "retry_later"


class QueueMessage(BaseModel):
    """
    Message as delivered by the broker.

    Attributes:
        topic: Topic the message was published to
        id: Broker-assigned message identifier
        body: Raw message bytes, never modified by the broker
        redelivery_count: Deliveries so far without acknowledgment
        properties: Metadata (trace/correlation identifiers, etc.)
        published_at: Timestamp when message was published
        scheduled_at: Earliest time the broker may deliver it again
    """

    topic: str
    id: str = ""
    body: bytes
    redelivery_count: int = Field(default=0, ge=0)
    properties: dict[str, str] = Field(default_factory=dict)
    published_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    scheduled_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class QueueMetrics(BaseModel):
    """
    Broker statistics.

    Attributes:
        pending: Messages waiting for delivery (including scheduled redeliveries)
        in_flight: Messages handed to a consumer and not yet resolved
        acknowledged: Total acknowledged messages
        redelivered: Total messages returned for redelivery
        published: Total messages published
        topics: Pending depth per topic
    """
    pending: int = 0
    in_flight: int = 0
    acknowledged: int = 0
    redelivered: int = 0
    published: int = 0
    topics: dict[str, int] = Field(default_factory=dict)


class MessageQueue(ABC):
    """
    Abstract message broker interface.

    Implementations must provide:
    - Publish: Synchronous send of a message to a topic
    - Receive: Get the next batch of deliverable messages for a topic
    - Acknowledge: Retire delivered messages
    - Retry later: Return delivered messages for redelivery
    - Metrics: Get current broker statistics
    """

    @abstractmethod
    async def publish(
        self,
        topic: str,
        body: bytes,
        properties: Optional[dict[str, str]] = None,
    ) -> str:
        """
        Publish a message.

        Args:
            topic: Destination topic
            body: Raw message bytes
            properties: Message metadata

        Returns:
            Message ID
        """
        pass

    @abstractmethod
    async def receive(self, topic: str, max_messages: int = 1) -> list[QueueMessage]:
        """
        Get the next deliverable messages for a topic.

        Args:
            topic: Topic to consume from
            max_messages: Maximum batch size

        Returns:
            Delivered batch, empty if nothing is ready
        """
        pass

    @abstractmethod
    async def acknowledge(self, messages: list[QueueMessage]) -> None:
        """
        Mark delivered messages as done.

        Args:
            messages: Batch to retire
        """
        pass

    @abstractmethod
    async def retry_later(self, messages: list[QueueMessage]) -> None:
        """
        Return delivered messages for redelivery.

        Increments each message's redelivery count and schedules it
        according to the broker's redelivery policy.

        Args:
            messages: Batch to redeliver
        """
        pass

    @abstractmethod
    async def get_messages(self, topic: str, limit: int = 100) -> list[QueueMessage]:
        """
        Peek at pending messages on a topic without delivering them.

        Args:
            topic: Topic to inspect
            limit: Maximum messages to return

        Returns:
            Pending messages in delivery order
        """
        pass

    @abstractmethod
    async def get_metrics(self) -> QueueMetrics:
        """
        Get current broker metrics.

        Returns:
            Broker statistics
        """
        pass
