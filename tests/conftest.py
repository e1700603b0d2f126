import pytest

from rescue_timeline.auth.verify import auth_dependency, bearer_token
from rescue_timeline.models.domain.calendar_domain import normalize_event


@pytest.fixture
def auth_override():
    def _override():
        return {"sub": "user-123"}

    return _override


class FakeRedis:
    """Implements the subset of FastRedisClient used by schedulers, devices and toasts."""

    def __init__(self):
        self.hashes: dict[str, dict[str, str]] = {}
        self.sets: dict[str, set[str]] = {}
        self.published: list[tuple[str, str]] = []
        self.closed = False

    def is_configured(self) -> bool:
        return True

    async def ping(self) -> bool:
        return True

    async def hset(self, key: str, field: str, value: str) -> None:
        self.hashes.setdefault(key, {})[field] = value

    async def hgetall(self, key: str) -> dict[str, str]:
        return dict(self.hashes.get(key, {}))

    async def hdel(self, key: str, field: str) -> bool:
        return self.hashes.get(key, {}).pop(field, None) is not None

    async def sadd(self, key: str, member: str) -> None:
        self.sets.setdefault(key, set()).add(member)

    async def smembers(self, key: str) -> set[str]:
        return set(self.sets.get(key, set()))

    async def publish(self, channel: str, message: str) -> int:
        self.published.append((channel, message))
        return 1

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_redis():
    return FakeRedis()


class StubCalendar:
    """Calendar source returning fixed events and recording the queries it got."""

    def __init__(self, events=None, error: Exception | None = None):
        self.events = list(events or [])
        self.error = error
        self.queries = []

    async def fetch_events(self, query, *, access_token=None):
        self.queries.append((query, access_token))
        if self.error is not None:
            raise self.error
        return list(self.events)


@pytest.fixture
def stub_calendar():
    return StubCalendar


def make_calendar_event(**overrides):
    """Calendar event built through the same normalization as upstream rows."""
    row = {
        "event_id": "med_1",
        "org_id": "org_1",
        "source_type": "medical",
        "source_id": "medrec_1",
        "title": "Vaccine booster",
        "start_at": "2025-12-20T10:00:00Z",
        "end_at": "2025-12-20T11:00:00Z",
        "location": "Clinic A",
        "status": "scheduled",
        "link_type": "dog",
        "link_id": "dog_1",
        "reminders": [],
    }
    row.update(overrides)
    event, _ = normalize_event(row)
    return event


@pytest.fixture
def calendar_event_factory():
    return make_calendar_event


@pytest.fixture
def apply_auth_override(auth_override):
    def _apply(app):
        app.dependency_overrides[auth_dependency] = auth_override
        app.dependency_overrides[bearer_token] = lambda: "test-token"

    return _apply
