"""
Tests for structured delivery logging.
"""
import pytest
from loguru import logger

from relay.utils.observability import configure_logging, log_delivery_outcome


@pytest.fixture
def records():
    captured = []
    handler_id = logger.add(lambda message: captured.append(message.record), level="DEBUG")
    yield captured
    logger.remove(handler_id)


class TestLogDeliveryOutcome:
    """Tests for log_delivery_outcome."""

    def test_success_logged_at_info(self, records):
        log_delivery_outcome(
            event_id="evt-1",
            event_type="registration",
            url="https://api.example.com/users",
            attempts=2,
            duration_ms=234.567,
            status_code=201,
        )

        record = records[-1]
        assert record["level"].name == "INFO"
        assert record["extra"]["success"] is True
        assert record["extra"]["duration_ms"] == 234.57
        assert record["extra"]["status_code"] == 201
        assert "error" not in record["extra"]

    def test_failure_logged_at_error(self, records):
        log_delivery_outcome(
            event_id="evt-1",
            event_type="registration",
            url="https://api.example.com/users",
            attempts=1,
            duration_ms=12.0,
            status_code=404,
            error="HTTP 404",
            terminal=True,
            topic="registration_events",
        )

        record = records[-1]
        assert record["level"].name == "ERROR"
        assert record["extra"]["success"] is False
        assert record["extra"]["terminal"] is True
        assert record["extra"]["topic"] == "registration_events"


def test_configure_logging_replaces_handlers():
    configure_logging()
    logger.info("configured")
