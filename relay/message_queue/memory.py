"""
In-Memory Message Broker

Simple in-process broker for single-instance deployments and tests.
Uses asyncio primitives; data is lost on restart.
"""

import asyncio
import uuid
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Optional

from relay.message_queue.base import (
    MessageQueue,
    QueueMessage,
    QueueMetrics,
)


class InMemoryQueue(MessageQueue):
    """
    In-memory topic broker.

    Each topic is a FIFO of pending messages. A delivered message stays
    in flight until the consumer acknowledges it or returns it for
    redelivery, which increments its redelivery count and delays it
    according to the redelivery schedule.

    Suitable for:
    - Testing
    - Single-instance deployments where API and worker share a process

    Not suitable for:
    - Multi-instance deployments
    - Durable, at-least-once delivery across restarts
    """

    def __init__(self, redelivery_delays: Optional[list[float]] = None):
        """
        Initialize in-memory broker.

        Args:
            redelivery_delays: Seconds to wait before the Nth redelivery;
                the last value repeats for later redeliveries
        """
        self._topics: dict[str, deque[QueueMessage]] = {}
        self._in_flight: dict[str, QueueMessage] = {}
        self._acknowledged = 0
        self._redelivered = 0
        self._published = 0
        self._lock = asyncio.Lock()

        # Redelivery delay schedule (in seconds)
        self._redelivery_delays = list(redelivery_delays) if redelivery_delays else [0.0]

    async def publish(
        self,
        topic: str,
        body: bytes,
        properties: Optional[dict[str, str]] = None,
    ) -> str:
        """
        Publish a message to a topic.

        Args:
            topic: Destination topic
            body: Raw message bytes
            properties: Message metadata

        Returns:
            Message ID
        """
        message = QueueMessage(
            topic=topic,
            id=str(uuid.uuid4()),
            body=body,
            properties=dict(properties or {}),
        )

        async with self._lock:
            self._topics.setdefault(topic, deque()).append(message)
            self._published += 1

        return message.id

    async def receive(self, topic: str, max_messages: int = 1) -> list[QueueMessage]:
        """
        Get the next deliverable messages for a topic.

        Messages still waiting out a redelivery delay are skipped and
        kept in place.

        Args:
            topic: Topic to consume from
            max_messages: Maximum batch size

        Returns:
            Delivered batch, empty if nothing is ready
        """
        async with self._lock:
            pending = self._topics.get(topic)
            if not pending:
                return []

            now = datetime.now(timezone.utc)
            batch: list[QueueMessage] = []
            waiting: deque[QueueMessage] = deque()

            while pending and len(batch) < max_messages:
                message = pending.popleft()
                if message.scheduled_at > now:
                    waiting.append(message)
                    continue
                self._in_flight[message.id] = message
                batch.append(message)

            # Put not-yet-due messages back at the head, preserving order
            pending.extendleft(reversed(waiting))

            return batch

    async def acknowledge(self, messages: list[QueueMessage]) -> None:
        """
        Mark delivered messages as done.

        Args:
            messages: Batch to retire
        """
        async with self._lock:
            for message in messages:
                if self._in_flight.pop(message.id, None) is not None:
                    self._acknowledged += 1

    async def retry_later(self, messages: list[QueueMessage]) -> None:
        """
        Return delivered messages for redelivery with backoff.

        Args:
            messages: Batch to redeliver
        """
        async with self._lock:
            for message in messages:
                if self._in_flight.pop(message.id, None) is None:
                    continue

                message.redelivery_count += 1
                delay_index = min(message.redelivery_count - 1, len(self._redelivery_delays) - 1)
                message.scheduled_at = datetime.now(timezone.utc) + timedelta(
                    seconds=self._redelivery_delays[delay_index]
                )

                self._topics.setdefault(message.topic, deque()).append(message)
                self._redelivered += 1

    async def get_messages(self, topic: str, limit: int = 100) -> list[QueueMessage]:
        """
        Peek at pending messages on a topic.

        Args:
            topic: Topic to inspect
            limit: Maximum messages to return

        Returns:
            Pending messages in delivery order
        """
        async with self._lock:
            return list(self._topics.get(topic, ()))[:limit]

    async def get_metrics(self) -> QueueMetrics:
        """
        Get current broker metrics.

        Returns:
            Broker statistics
        """
        async with self._lock:
            depths = {topic: len(pending) for topic, pending in self._topics.items()}
            return QueueMetrics(
                pending=sum(depths.values()),
                in_flight=len(self._in_flight),
                acknowledged=self._acknowledged,
                redelivered=self._redelivered,
                published=self._published,
                topics=depths,
            )
