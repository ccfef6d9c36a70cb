"""
FastAPI Dependencies

Accessors for the components the lifespan stores on application state.
"""

from fastapi import Request, HTTPException, status
from loguru import logger

from relay.message_queue import MessageQueue
from relay.models.routing import RelayConfig


def get_queue(request: Request) -> MessageQueue:
    """
    Broker used for publishing ingested events.

    Raises:
        HTTPException: 503 if the service has not finished starting
    """
    queue = getattr(request.app.state, "queue", None)
    if queue is None:
        logger.error("Queue requested before startup completed")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not ready"
        )
    return queue


def get_routing_config(request: Request) -> RelayConfig:
    """
    Routing table loaded at startup.

    Raises:
        HTTPException: 503 if the service has not finished starting
    """
    config = getattr(request.app.state, "routing_config", None)
    if config is None:
        logger.error("Routing config requested before startup completed")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not ready"
        )
    return config
