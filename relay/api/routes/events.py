"""
Event Ingestion Endpoint

Validates producer events and publishes them to the queue of their
routing rule. Delivery to the external API happens later, in the worker.
"""
import json
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import ValidationError

from relay.api.dependencies import get_queue, get_routing_config
from relay.api.models import EventIngestRequest
from relay.message_queue import MessageQueue
from relay.models.routing import RelayConfig
from relay.utils.metrics import metrics

router = APIRouter(tags=["Events"])


def _reject(reason: str, error: str, status_code: int = status.HTTP_400_BAD_REQUEST) -> JSONResponse:
    metrics.ingestion_rejected.inc(reason=reason)
    return JSONResponse(
        status_code=status_code,
        content={"status": "rejected", "error": error}
    )


@router.post("/events", status_code=status.HTTP_202_ACCEPTED)
async def ingest_event(
    request: Request,
    queue: MessageQueue = Depends(get_queue),
    config: RelayConfig = Depends(get_routing_config),
):
    """
    Accept an event for asynchronous notification.

    Flow:
    1. Parse and validate the JSON body
    2. Resolve the routing rule for the event type
    3. Fill in ID and timestamp when missing
    4. Publish to the rule's queue
    5. Return 202 Accepted

    Returns:
        JSON acknowledgment with the event ID
    """
    try:
        payload = json.loads(await request.body())
        ingest = EventIngestRequest.model_validate(payload)
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
        logger.warning(f"Invalid event payload: {e}")
        return _reject("invalid_body", "Invalid request body")

    rule = config.find_rule(ingest.type)
    if rule is None:
        logger.warning(f"Rejected event with unknown type {ingest.type!r}")
        return _reject("unknown_type", f"Unknown event type: {ingest.type}")

    event = ingest.to_event()

    try:
        message_id = await queue.publish(rule.queue_name, event.model_dump_json().encode("utf-8"))
    except Exception as e:
        logger.exception(f"Failed to publish event {event.id}: {e}")
        return _reject("publish_failed", "Internal server error", status.HTTP_500_INTERNAL_SERVER_ERROR)

    metrics.events_ingested.inc(event_type=event.type)
    logger.bind(
        event_id=event.id,
        event_type=event.type,
        topic=rule.queue_name,
        message_id=message_id,
    ).info("Event accepted")

    return {
        "status": "accepted",
        "event_id": event.id,
        "message_id": message_id,
    }
