"""
Queue Worker

Consumer runtime that pulls batches from subscribed topics and
dispatches them to message handlers.
"""

import asyncio
from typing import Callable, Awaitable
from loguru import logger

from relay.message_queue.base import Disposition, MessageQueue, QueueMessage

BatchHandler = Callable[[list[QueueMessage]], Awaitable[Disposition]]


class QueueWorker:
    """
    Background consumer for subscribed topics.

    Continuously polls every subscribed topic and runs the registered
    handler for each delivered batch in its own task. The handler's
    disposition decides whether the batch is acknowledged or returned
    for redelivery; a handler that raises counts as RETRY_LATER.

    Attributes:
        queue: Broker to consume from
        max_concurrent: Maximum number of batches handled at once
        poll_interval: Seconds to wait when no topic has messages
        batch_size: Maximum messages per handler invocation
    """

    def __init__(
        self,
        queue: MessageQueue,
        max_concurrent: int = 10,
        poll_interval: float = 1.0,
        batch_size: int = 1,
        stop_timeout: float = 30.0,
    ):
        """
        Initialize queue worker.

        Args:
            queue: Broker to consume from
            max_concurrent: Max concurrent batch handlers
            poll_interval: Seconds between polls when idle
            batch_size: Max messages delivered per batch
            stop_timeout: Seconds stop() waits for in-flight batches
        """
        self.queue = queue
        self.max_concurrent = max_concurrent
        self.poll_interval = poll_interval
        self.batch_size = batch_size
        self.stop_timeout = stop_timeout
        self._handlers: dict[str, BatchHandler] = {}
        self._running = False
        self._tasks: set[asyncio.Task] = set()
        self._semaphore = asyncio.Semaphore(max_concurrent)

    @property
    def running(self) -> bool:
        """Whether the poll loop is active."""
        return self._running

    @property
    def topics(self) -> list[str]:
        """Subscribed topics in subscription order."""
        return list(self._handlers)

    def subscribe(self, topic: str, handler: BatchHandler) -> None:
        """
        Register a handler for a topic.

        Several topics may share one handler. Subscribing the same topic
        twice keeps the first registration.

        Args:
            topic: Topic to consume
            handler: Async function returning a disposition for a batch
        """
        if topic in self._handlers:
            logger.debug(f"Already subscribed to topic {topic}")
            return

        self._handlers[topic] = handler
        logger.info(f"Subscribed to topic: {topic}")

    async def start(self) -> None:
        """
        Start the worker.

        Polls subscribed topics and dispatches batches.
        Runs until stop() is called.
        """
        if self._running:
            logger.warning("Worker already running")
            return

        self._running = True
        logger.info(
            f"🚀 Queue worker started (topics={self.topics}, "
            f"max_concurrent={self.max_concurrent}, poll_interval={self.poll_interval}s)"
        )

        try:
            while self._running:
                dispatched = 0

                for topic, handler in list(self._handlers.items()):
                    await self._semaphore.acquire()
                    try:
                        batch = await self.queue.receive(topic, self.batch_size)
                    except BaseException:
                        self._semaphore.release()
                        raise

                    if not batch:
                        self._semaphore.release()
                        continue

                    task = asyncio.create_task(self._process_batch(topic, handler, batch))
                    self._tasks.add(task)
                    task.add_done_callback(self._tasks.discard)
                    dispatched += 1

                if not dispatched:
                    # Nothing ready on any topic, wait before polling again
                    await asyncio.sleep(self.poll_interval)

        except Exception as e:
            logger.exception(f"Worker crashed: {e}")
            raise

        finally:
            self._running = False
            logger.info("🛑 Queue worker stopped")

    async def stop(self) -> None:
        """
        Stop the worker.

        Gracefully shuts down:
        1. Stops polling for new batches
        2. Waits for in-flight batches to complete
        3. Cancels any remaining tasks (their batches are redelivered)
        """
        if not self._running:
            return

        logger.info("Stopping queue worker...")
        self._running = False

        if self._tasks:
            logger.info(f"Waiting for {len(self._tasks)} batches to complete...")
            try:
                await asyncio.wait_for(
                    asyncio.gather(*self._tasks, return_exceptions=True),
                    timeout=self.stop_timeout
                )
            except asyncio.TimeoutError:
                logger.warning("Timeout waiting for batches, cancelling remaining")
                for task in list(self._tasks):
                    task.cancel()

    async def _process_batch(
        self,
        topic: str,
        handler: BatchHandler,
        batch: list[QueueMessage],
    ) -> None:
        """
        Run the handler for one batch and apply its disposition.

        Must be called with the semaphore held; releases it on exit.

        Args:
            topic: Topic the batch came from
            handler: Registered handler for the topic
            batch: Delivered messages
        """
        message_ids = [message.id for message in batch]
        try:
            try:
                disposition = await handler(batch)
            except asyncio.CancelledError:
                # Shutdown interrupted the handler, let the broker redeliver
                await self.queue.retry_later(batch)
                raise
            except Exception as e:
                logger.bind(topic=topic, message_ids=message_ids, error=str(e)).exception(
                    f"❌ Handler failed for batch on {topic}: {e}"
                )
                disposition = Disposition.RETRY_LATER

            if disposition == Disposition.ACKNOWLEDGE:
                await self.queue.acknowledge(batch)
            else:
                await self.queue.retry_later(batch)

            logger.bind(topic=topic, message_ids=message_ids).debug(
                f"Batch on {topic} resolved: {disposition.value}"
            )
        finally:
            self._semaphore.release()
