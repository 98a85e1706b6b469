from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from catchup.main import create_app
from catchup.services.classifier_service import Categorization, RuleBasedClassifier
from catchup.services.session_store import SessionStore


class FakeClock:
    """Manually advanced clock injected into the store."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 10, 12, 0, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class EventRecorder:
    """Store listener that keeps every event it sees."""

    def __init__(self):
        self.events = []

    def __call__(self, event) -> None:
        self.events.append(event)

    @property
    def kinds(self) -> list:
        return [event.kind for event in self.events]


class FakeClassifier(RuleBasedClassifier):
    """Rule classifier with a scripted confidence, for smart-keyword tests."""

    name = "fake"

    def __init__(self, confidence: float = 0.9):
        self.confidence = confidence

    async def categorize(self, text: str):
        result = self.categorize_sync(text)
        return Categorization(category=result.category, confidence=self.confidence, reasoning="fake")


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def store(fake_clock):
    return SessionStore(ttl_seconds=3600, clock=fake_clock)


@pytest.fixture
def recorder(store):
    events = EventRecorder()
    store.subscribe(events)
    return events


@pytest.fixture
def classifier():
    return FakeClassifier()


@pytest.fixture
def app(store, classifier):
    return create_app(store=store, classifier=classifier)


@pytest.fixture
def client(app):
    # Context manager keeps HTTP calls and sockets on one event loop
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def session_with_people(store):
    """Sarah creates; Mike, Alex, Jo and Sam join. Five participants total."""
    created = store.create_session("Weekend brunch with the crew", "Sarah")
    ids = {"Sarah": created.participant_id}
    for name in ("Mike", "Alex", "Jo", "Sam"):
        ids[name] = store.join_session(created.session_id, name).participant_id
    return created.session_id, ids
