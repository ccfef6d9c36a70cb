import pytest
from fastapi.testclient import TestClient

from relay.api.main import app

STATE_ATTRIBUTES = ("routing_config", "queue", "worker", "worker_task")


@pytest.fixture(autouse=True)
def reset_app_state():
    """Leave no lifespan components behind between tests."""
    yield
    for name in STATE_ATTRIBUTES:
        if hasattr(app.state, name):
            delattr(app.state, name)


@pytest.fixture
def client():
    """Test client without lifespan; tests install state themselves."""
    return TestClient(app)


@pytest.fixture
def ready_app(queue, routing_config):
    """App state as left by a completed startup, minus the worker."""
    app.state.queue = queue
    app.state.routing_config = routing_config
    return app
