import pytest
import httpx

from relay.core.delivery import build_client
from relay.message_queue import InMemoryQueue, QueueMessage
from relay.models.event import Event
from relay.models.routing import RelayConfig
from relay.utils.metrics import metrics


class FakeSleep:
    """Records requested delays instead of waiting."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class RecordingTransport:
    """httpx mock handler replaying a scripted list of responses or errors."""

    def __init__(self, outcomes):
        self._outcomes = list(outcomes)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self._outcomes.pop(0) if len(self._outcomes) > 1 else self._outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, int):
            return httpx.Response(outcome, text=f"status {outcome}")
        return outcome


@pytest.fixture(autouse=True)
def clean_metrics():
    """Start every test from zeroed metrics."""
    metrics.reset()
    yield


@pytest.fixture
def routing_data():
    """Raw routing file contents."""
    return {
        "mq": {"name_server": "127.0.0.1:9876", "group_name": "relay", "max_retries": 16},
        "notifications": [
            {
                "event_type": "registration",
                "queue_name": "registration_events",
                "http_method": "POST",
                "http_url": "https://api.example.com/users",
                "headers": {"Content-Type": "application/json", "X-Api-Key": "secret"},
                "body": {"id": "{$.event.user_id}", "n": 5},
            },
            {
                "event_type": "payment",
                "queue_name": "payment_events",
                "http_method": "put",
                "http_url": "https://billing.example.com/payments",
                "body": {"amount": "{$.event.amount}"},
            },
        ],
    }


@pytest.fixture
def routing_config(routing_data):
    """Validated routing configuration."""
    return RelayConfig.model_validate(routing_data)


@pytest.fixture
def registration_event():
    """Event routed by the registration rule."""
    return Event(id="evt-1", type="registration", data={"user_id": "42", "email": "a@example.com"})


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def queue():
    """Fresh broker with immediate redelivery."""
    return InMemoryQueue(redelivery_delays=[0])


@pytest.fixture
def make_message():
    """Factory for delivered queue messages."""
    def _make(body: bytes, topic: str = "registration_events", redelivery_count: int = 0, message_id: str = "msg-1", **properties):
        return QueueMessage(
            topic=topic,
            id=message_id,
            body=body,
            redelivery_count=redelivery_count,
            properties=properties,
        )
    return _make


@pytest.fixture
def mock_http():
    """Factory for an httpx client backed by a scripted transport."""
    def _make(*outcomes):
        transport = RecordingTransport(outcomes)
        return build_client(10.0, transport=httpx.MockTransport(transport)), transport
    return _make
