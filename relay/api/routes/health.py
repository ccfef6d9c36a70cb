"""
Health and Readiness Endpoints

Kubernetes-compatible health probes for load balancers and orchestration.
"""
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from loguru import logger

router = APIRouter(tags=["Health"])

# API version - single source of truth
API_VERSION = "1.0.0"


@router.get("/health")
async def health_check():
    """
    Basic health check endpoint.

    Returns 200 if service is running.
    Used by load balancers and monitoring systems.
    """
    return {
        "status": "healthy",
        "service": "event-relay",
        "version": API_VERSION
    }


@router.get("/ready")
async def readiness_check(request: Request):
    """
    Readiness probe - checks if service can accept and relay events.

    Verifies:
    - Routing configuration is loaded
    - Queue worker is consuming

    Returns 200 if ready, 503 if not ready.
    """
    config = getattr(request.app.state, "routing_config", None)
    worker = getattr(request.app.state, "worker", None)

    if config is None:
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "reason": "Routing configuration not loaded"}
        )

    if worker is None or not worker.running:
        logger.warning("Readiness check failed: queue worker not running")
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "reason": "Queue worker not running"}
        )

    return {
        "status": "ready",
        "routes": len(config.notifications),
        "topics": worker.topics,
    }


@router.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "service": "Event Relay API",
        "version": API_VERSION,
        "endpoints": {
            "health": "/health",
            "ready": "/ready",
            "events": "/events (POST)",
            "metrics": "/metrics",
            "queue_metrics": "/metrics/queue"
        }
    }
