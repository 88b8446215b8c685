import pytest
from fastapi.testclient import TestClient

from simmer.main import app
from simmer.deps import limiter
from simmer.schemas import ScheduleResult, TimelineItem
from simmer.services.session_control import SessionControl
from simmer.services.session_registry import SessionRegistry

START_MS = 1_700_000_000_000


class FakeClock:
    """Injectable wall clock in epoch milliseconds."""

    def __init__(self, now_ms: int = START_MS):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


def make_item(recipe_id, step_index, attention, start_sec, end_sec, recipe_name="Test Recipe"):
    return TimelineItem(
        recipe_id=recipe_id,
        recipe_name=recipe_name,
        step_index=step_index,
        text=f"{attention} step {step_index}",
        attention=attention,
        start_sec=start_sec,
        end_sec=end_sec,
    )


# --- Fixtures ---

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def control(clock):
    """Fresh session registry per test, driven by the fake clock."""
    return SessionControl(SessionRegistry(clock=clock))


@pytest.fixture
def sample_schedule():
    """Two foreground steps with background work running alongside."""
    return ScheduleResult(
        total_duration_sec=30,
        items=[
            make_item("1", 0, "foreground", 0, 10),
            make_item("1", 1, "background", 2, 20),
            make_item("1", 2, "foreground", 10, 15),
            make_item("1", 3, "background", 15, 30),
        ],
    )


@pytest.fixture
def sample_payload(sample_schedule):
    return sample_schedule.model_dump(mode="json", by_alias=True, exclude_none=True)


@pytest.fixture
def client(control):
    """Test client with the per-test SessionControl installed."""
    previous = app.state.session_control
    app.state.session_control = control
    with TestClient(app) as c:
        yield c
    app.state.session_control = previous


@pytest.fixture(autouse=True)
def reset_rate_limits():
    limiter.reset()
    yield


import fakeredis
import fakeredis.aioredis
from simmer.infra import redis_client

@pytest.fixture(autouse=True)
def mock_redis():
    server = fakeredis.FakeServer()
    async_redis = fakeredis.aioredis.FakeRedis(server=server, decode_responses=True)

    # Force the client into the infra module
    redis_client._redis_async = async_redis

    yield async_redis

    redis_client._redis_async = None
