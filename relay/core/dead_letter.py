"""
Dead-Letter Escalation

Moves messages that exhausted broker redelivery (or were rejected outright
by the external API) to a dead-letter topic derived from their source
topic, so they stop cycling without being lost.
"""

from typing import Optional, Protocol

from loguru import logger

from relay.message_queue.base import QueueMessage
from relay.utils.metrics import metrics

DEAD_LETTER_PREFIX = "DLQ_"


class DeadLetterError(Exception):
    """Raised when the dead-letter publish fails."""
    pass


class Publisher(Protocol):
    """Anything that can synchronously publish to a topic."""

    async def publish(
        self,
        topic: str,
        body: bytes,
        properties: Optional[dict[str, str]] = None,
    ) -> str:
        ...


def dead_letter_topic(topic: str) -> str:
    """Dead-letter destination for a source topic."""
    return f"{DEAD_LETTER_PREFIX}{topic}"


class DeadLetterEscalator:
    """
    Republishes a message, unmodified, to its dead-letter topic.

    The original body bytes and property map are carried over as is;
    nothing is wrapped or annotated.
    """

    def __init__(self, publisher: Publisher):
        """
        Args:
            publisher: Producer connection used for dead-letter sends,
                may be shared across concurrent handlers
        """
        self._publisher = publisher

    async def escalate(self, message: QueueMessage) -> str:
        """
        Publish a message to its dead-letter topic.

        Args:
            message: Message to escalate

        Returns:
            ID of the dead-letter message

        Raises:
            DeadLetterError: If the publish fails; the caller must not
                acknowledge the original message
        """
        topic = dead_letter_topic(message.topic)

        try:
            dead_letter_id = await self._publisher.publish(
                topic,
                message.body,
                dict(message.properties),
            )
        except Exception as e:
            metrics.dead_letters.inc(topic=message.topic, result="failed")
            raise DeadLetterError(f"failed to publish message {message.id} to {topic}: {e}") from e

        metrics.dead_letters.inc(topic=message.topic, result="published")
        logger.bind(
            message_id=message.id,
            topic=message.topic,
            dead_letter_topic=topic,
            dead_letter_id=dead_letter_id,
            redelivery_count=message.redelivery_count,
        ).warning(f"Message {message.id} sent to dead-letter topic {topic}")
        return dead_letter_id
