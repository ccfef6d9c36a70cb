"""
Message Handler

Orchestrates one delivery attempt per inbound queue message:

    redelivery_count >= max_retries  -> dead-letter, ACKNOWLEDGE (RETRY_LATER if that fails)
    body does not decode             -> drop, ACKNOWLEDGE
    no rule for event type           -> drop, ACKNOWLEDGE
    render + deliver succeeds        -> ACKNOWLEDGE
    delivery fails                   -> RETRY_LATER
    delivery rejected (client error) -> per terminal failure policy

Undecodable bodies and unrouted event types are acknowledged on purpose:
redelivering them can never succeed.

The handler keeps no state between calls. The broker's redelivery count
is the only retry counter, and the routing table is read-only, so one
instance serves any number of concurrent batches.
"""

from typing import Literal

from loguru import logger

from relay.core.dead_letter import DeadLetterError, DeadLetterEscalator
from relay.core.delivery import DeliveryError, DeliveryExecutor, TerminalDeliveryError
from relay.core.renderer import render_body
from relay.message_queue.base import Disposition, QueueMessage
from relay.models.event import EventDecodeError, decode_event
from relay.models.routing import RelayConfig
from relay.utils.metrics import Timer, metrics

TerminalFailurePolicy = Literal["retry", "dead_letter", "drop"]


class MessageHandler:
    """
    Decides the disposition of each delivered batch.

    Usage:
        handler = MessageHandler(config, executor, escalator)
        worker.subscribe(topic, handler)
    """

    def __init__(
        self,
        config: RelayConfig,
        executor: DeliveryExecutor,
        escalator: DeadLetterEscalator,
        terminal_failure_policy: TerminalFailurePolicy = "dead_letter",
    ):
        """
        Initialize message handler.

        Args:
            config: Routing table and dead-letter threshold
            executor: Outbound HTTP delivery
            escalator: Dead-letter publisher
            terminal_failure_policy: What to do when the external API
                rejects a request with a terminal client error
        """
        self._config = config
        self._executor = executor
        self._escalator = escalator
        self._terminal_failure_policy = terminal_failure_policy

    @property
    def max_retries(self) -> int:
        return self._config.max_retries

    async def __call__(self, messages: list[QueueMessage]) -> Disposition:
        return await self.handle_batch(messages)

    async def handle_batch(self, messages: list[QueueMessage]) -> Disposition:
        """
        Resolve a batch to a single disposition.

        Messages are handled one after another and every message is
        resolved. The batch is acknowledged only when every message was.

        Args:
            messages: Batch delivered by the broker

        Returns:
            Combined disposition for the batch
        """
        combined = Disposition.ACKNOWLEDGE
        for message in messages:
            if await self.handle_message(message) == Disposition.RETRY_LATER:
                combined = Disposition.RETRY_LATER
        return combined

    async def handle_message(self, message: QueueMessage) -> Disposition:
        """
        Resolve a single message.

        Args:
            message: Message delivered by the broker

        Returns:
            Disposition for this message
        """
        disposition = await self._handle(message)
        metrics.dispositions.inc(outcome=disposition.value)
        return disposition

    async def _handle(self, message: QueueMessage) -> Disposition:
        log = logger.bind(
            message_id=message.id,
            topic=message.topic,
            redelivery_count=message.redelivery_count,
        )
        metrics.messages_received.inc(topic=message.topic)
        log.debug(
            f"Received message {message.id} from {message.topic} "
            f"(redelivery {message.redelivery_count})"
        )

        if message.redelivery_count >= self.max_retries:
            log.warning(
                f"Message {message.id} exceeded max retries ({self.max_retries}), sending to dead-letter topic"
            )
            return await self._dead_letter(message)

        try:
            event = decode_event(message.body)
        except EventDecodeError as e:
            log.bind(error=str(e)).warning(
                f"Failed to decode message {message.id}, dropping: {e}"
            )
            return Disposition.ACKNOWLEDGE

        rule = self._config.find_rule(event.type)
        if rule is None:
            log.bind(event_id=event.id, event_type=event.type).warning(
                f"No routing rule for event type {event.type!r}, dropping message {message.id}"
            )
            return Disposition.ACKNOWLEDGE

        body = render_body(rule.body_template, event)

        try:
            with Timer(metrics.delivery_duration, event_type=event.type):
                await self._executor.deliver(rule, body, event)
        except TerminalDeliveryError as e:
            log.bind(event_id=event.id, status_code=e.status_code).error(
                f"External API rejected event {event.id}: {e}"
            )
            metrics.deliveries.inc(event_type=event.type, result="rejected")
            return await self._on_terminal_failure(message)
        except DeliveryError as e:
            log.bind(event_id=event.id, status_code=e.status_code).error(
                f"Failed to deliver event {event.id}, will retry: {e}"
            )
            metrics.deliveries.inc(event_type=event.type, result="failed")
            return Disposition.RETRY_LATER

        metrics.deliveries.inc(event_type=event.type, result="delivered")
        return Disposition.ACKNOWLEDGE

    async def _on_terminal_failure(self, message: QueueMessage) -> Disposition:
        if self._terminal_failure_policy == "dead_letter":
            return await self._dead_letter(message)
        if self._terminal_failure_policy == "drop":
            logger.bind(message_id=message.id).warning(f"Dropping rejected message {message.id}")
            return Disposition.ACKNOWLEDGE
        return Disposition.RETRY_LATER

    async def _dead_letter(self, message: QueueMessage) -> Disposition:
        try:
            await self._escalator.escalate(message)
        except DeadLetterError as e:
            logger.bind(message_id=message.id, topic=message.topic).error(
                f"Dead-letter escalation failed for {message.id}, will retry: {e}"
            )
            return Disposition.RETRY_LATER
        return Disposition.ACKNOWLEDGE
