import itertools

import pytest

from focusmail.config import FocusMailConfig
from focusmail.mocks.store import InMemoryKeyValueStore
from focusmail.services.email.classifier import ClassificationEngine
from focusmail.services.email.orchestrator import ClassificationOrchestrator
from focusmail.services.feedback.store import FeedbackStore
from tests.factories import FakeGenAIClient, json_reply


@pytest.fixture
def test_config(monkeypatch):
    monkeypatch.setenv("FOCUSMAIL_ENV", "test")
    monkeypatch.setenv("GEMINI_MODEL", "gemini-test")
    for name in ("RETRIEVAL_LIMIT", "FEEDBACK_LOG_LIMIT", "PROMPT_GUARD_ENABLED", "FETCH_LIMIT"):
        monkeypatch.delenv(name, raising=False)
    return FocusMailConfig()


@pytest.fixture
def clock():
    ticks = itertools.count(1000)
    return lambda: next(ticks)


@pytest.fixture
def kv_store():
    return InMemoryKeyValueStore()


@pytest.fixture
def feedback_store(kv_store, clock):
    return FeedbackStore(kv_store, clock=clock)


@pytest.fixture
def make_engine(test_config, feedback_store):
    """Builds an engine whose Gemini client answers with `responder(prompt)`."""
    def _make(responder=None):
        client = FakeGenAIClient(responder or json_reply())
        engine = ClassificationEngine(test_config, feedback_store, client_factory=lambda api_key: client)
        return engine, client
    return _make


@pytest.fixture
def orchestrator(make_engine, feedback_store):
    engine, _ = make_engine()
    return ClassificationOrchestrator(engine, feedback_store)
