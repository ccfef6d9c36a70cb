"""
Metrics Endpoints

Prometheus-compatible metrics and broker statistics.
"""
from fastapi import APIRouter, Request
from fastapi.responses import Response, JSONResponse
from loguru import logger

from relay.core.dead_letter import dead_letter_topic
from relay.message_queue import MessageQueue
from relay.utils.metrics import metrics

router = APIRouter(tags=["Metrics"])


async def _dead_letter_depths(request: Request) -> dict[str, int]:
    queue: MessageQueue = request.app.state.queue
    stats = await queue.get_metrics()
    config = getattr(request.app.state, "routing_config", None)
    topics = config.topics() if config is not None else []
    return {dead_letter_topic(t): stats.topics.get(dead_letter_topic(t), 0) for t in topics}


@router.get("/metrics")
async def prometheus_metrics(request: Request):
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text exposition format for scraping.
    Includes:
    - Ingested and rejected events
    - Broker depth and in-flight messages
    - Handler dispositions and dead-letter escalations
    - Delivery results, attempts and durations

    Content-Type: text/plain; version=0.0.4; charset=utf-8
    """
    try:
        queue: MessageQueue = request.app.state.queue
        queue_stats = await queue.get_metrics()

        metrics.queue_pending.set(queue_stats.pending)
        metrics.queue_in_flight.set(queue_stats.in_flight)
        for topic, depth in (await _dead_letter_depths(request)).items():
            metrics.dead_letter_depth.set(depth, topic=topic)

        return Response(
            content=metrics.export(),
            media_type="text/plain; version=0.0.4; charset=utf-8"
        )

    except Exception as e:
        logger.exception(f"Failed to export metrics: {e}")
        return Response(
            content=f"# Error exporting metrics: {e}\n",
            media_type="text/plain",
            status_code=500
        )


@router.get("/metrics/queue")
async def queue_metrics(request: Request):
    """
    Get broker statistics.

    Returns:
    - Pending and in-flight messages
    - Acknowledged, redelivered and published totals
    - Depth per topic
    - Depth of each dead-letter topic

    Returns:
        Queue metrics as JSON
    """
    try:
        queue: MessageQueue = request.app.state.queue
        queue_stats = await queue.get_metrics()

        return {
            "status": "ok",
            "metrics": queue_stats.model_dump(),
            "dead_letter": await _dead_letter_depths(request),
        }

    except Exception as e:
        logger.exception(f"Failed to get queue metrics: {e}")
        return JSONResponse(
            status_code=500,
            content={
                "status": "error",
                "error": str(e)
            }
        )
