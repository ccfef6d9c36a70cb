"""
FastAPI Application

Main entry point for the Event Relay service.
Runs the ingestion API and the queue worker in one process and handles
their lifecycle.

Run with:
    uvicorn relay.api.main:app --host 0.0.0.0 --port 8080
or:
    python -m relay.api.main
"""
import asyncio
from contextlib import asynccontextmanager
import httpx
from fastapi import FastAPI
from loguru import logger

from relay.config import Settings, get_settings, load_routing_config
from relay.core import DeadLetterEscalator, DeliveryExecutor, MessageHandler, build_client
from relay.message_queue import InMemoryQueue, MessageQueue, QueueWorker
from relay.models.routing import RelayConfig
from relay.utils.observability import configure_logging
from relay.api.routes import health_router, events_router, metrics_router


def build_worker(
    settings: Settings,
    config: RelayConfig,
    queue: MessageQueue,
    client: httpx.AsyncClient,
) -> QueueWorker:
    """
    Wire the delivery pipeline and subscribe it to every routed topic.

    One handler instance serves all topics; the dead-letter producer
    shares the broker used for consumption.

    Args:
        settings: Process settings
        config: Routing table
        queue: Broker to consume from and dead-letter into
        client: Shared outbound HTTP client

    Returns:
        Worker ready to start
    """
    executor = DeliveryExecutor(
        client,
        max_attempts=settings.delivery_max_attempts,
        backoff_base_seconds=settings.delivery_backoff_base_ms / 1000,
    )
    handler = MessageHandler(
        config,
        executor,
        DeadLetterEscalator(queue),
        terminal_failure_policy=settings.terminal_failure_policy,
    )

    worker = QueueWorker(
        queue=queue,
        max_concurrent=settings.worker_max_concurrent,
        poll_interval=settings.worker_poll_interval,
        batch_size=settings.worker_batch_size,
    )
    for rule in config.notifications:
        if rule.queue_name not in worker.topics:
            worker.subscribe(rule.queue_name, handler)
            logger.info(f"Routing event type {rule.event_type} via topic {rule.queue_name}")

    return worker


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle: startup and shutdown events.

    Startup:
    - Configure logging
    - Load and validate the routing file (fails startup if invalid)
    - Initialize broker, HTTP client and delivery pipeline
    - Start background queue worker

    Shutdown:
    - Stop background worker gracefully
    - Close the HTTP client
    """
    settings = get_settings()
    configure_logging()
    logger.info("Starting Event Relay...")

    config = load_routing_config(settings.routing_config_path)
    logger.bind(routes=len(config.notifications), max_retries=config.max_retries).info(
        "Routing configuration loaded and validated"
    )

    queue = InMemoryQueue(redelivery_delays=settings.queue_redelivery_delays)
    client = build_client(settings.http_timeout_seconds)
    worker = build_worker(settings, config, queue, client)

    # Store in app state for access in routes
    app.state.routing_config = config
    app.state.queue = queue
    app.state.worker = worker

    worker_task = asyncio.create_task(worker.start())
    app.state.worker_task = worker_task

    logger.info("Event Relay ready to receive events")

    yield

    logger.info("Shutting down Event Relay...")

    await worker.stop()

    if not worker_task.done():
        worker_task.cancel()
        try:
            await worker_task
        except asyncio.CancelledError:
            logger.info("Stopped queue worker")

    await client.aclose()
    logger.info("Shutdown complete")


# Create FastAPI application
app = FastAPI(
    title="Event Relay API",
    description="Relays business events to external HTTP APIs via a message queue",
    version="1.0.0",
    lifespan=lifespan
)

# Mount routers
app.include_router(health_router)
app.include_router(events_router)
app.include_router(metrics_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("relay.api.main:app", host="0.0.0.0", port=8080)
