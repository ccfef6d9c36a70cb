"""
Tests for the event ingestion endpoint.
"""
import asyncio
import json
import pytest
from unittest.mock import AsyncMock, MagicMock

from relay.api.main import app
from relay.models.event import decode_event
from relay.utils.metrics import metrics


def pending(queue, topic):
    return asyncio.run(queue.get_messages(topic))


class TestIngestEvent:
    """Tests for POST /events."""

    def test_accepts_routed_event(self, client, ready_app, queue):
        """A routed event is published to its rule's queue."""
        response = client.post(
            "/events",
            json={
                "id": "evt-1",
                "type": "registration",
                "timestamp": "2023-10-27T10:00:00Z",
                "data": {"user_id": "42"},
            },
        )

        assert response.status_code == 202
        data = response.json()
        assert data["status"] == "accepted"
        assert data["event_id"] == "evt-1"

        messages = pending(queue, "registration_events")
        assert len(messages) == 1
        assert messages[0].id == data["message_id"]

        event = decode_event(messages[0].body)
        assert event.type == "registration"
        assert event.data == {"user_id": "42"}
        assert metrics.events_ingested.value(event_type="registration") == 1

    def test_fills_missing_id_and_timestamp(self, client, ready_app, queue):
        response = client.post("/events", json={"type": "payment"})

        assert response.status_code == 202
        event = decode_event(pending(queue, "payment_events")[0].body)
        assert event.id
        assert event.id == response.json()["event_id"]
        assert event.timestamp is not None
        assert event.data == {}

    def test_rejects_invalid_json(self, client, ready_app, queue):
        response = client.post(
            "/events",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json() == {"status": "rejected", "error": "Invalid request body"}
        assert pending(queue, "registration_events") == []
        assert metrics.ingestion_rejected.value(reason="invalid_body") == 1

    @pytest.mark.parametrize(
        "payload",
        [
            {"id": "evt-1"},
            {"type": ""},
            {"type": 5},
            {"type": "registration", "data": ["not", "a", "map"]},
            ["registration"],
        ],
    )
    def test_rejects_invalid_payload(self, client, ready_app, payload):
        response = client.post("/events", content=json.dumps(payload))

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid request body"

    def test_rejects_unknown_type(self, client, ready_app, queue):
        response = client.post("/events", json={"type": "refund"})

        assert response.status_code == 400
        assert response.json()["error"] == "Unknown event type: refund"
        assert metrics.ingestion_rejected.value(reason="unknown_type") == 1
        assert asyncio.run(queue.get_metrics()).published == 0

    def test_publish_failure_returns_500(self, client, routing_config):
        failing_queue = MagicMock()
        failing_queue.publish = AsyncMock(side_effect=RuntimeError("broker down"))
        app.state.queue = failing_queue
        app.state.routing_config = routing_config

        response = client.post("/events", json={"type": "registration"})

        assert response.status_code == 500
        assert response.json()["status"] == "rejected"
        assert metrics.ingestion_rejected.value(reason="publish_failed") == 1

    def test_unavailable_before_startup(self, client):
        response = client.post("/events", json={"type": "registration"})

        assert response.status_code == 503
