import pytest
from fastapi.testclient import TestClient

from focusmail.api import app
from focusmail.dependencies import get_config, get_orchestrator
from focusmail.mocks.email import DEMO_USER_EMAIL
from focusmail.services.email.classifier import ClassificationEngine
from focusmail.services.email.orchestrator import ClassificationOrchestrator
from tests.factories import FakeGenAIClient, json_reply


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setenv("FOCUSMAIL_ENV", "test")
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def loaded_client(client):
    response = client.post("/emails/refresh")
    assert response.status_code == 200
    return client


def test_system_and_config_status(client):
    status = client.get("/system-status").json()
    assert status == {"is_authenticated": True, "user_email": DEMO_USER_EMAIL, "demo_mode": True}

    config = client.get("/config-status").json()
    assert config["use_mock_data"] is True
    assert config["env"] == "test"


def test_refresh_in_demo_mode_returns_preclassified_mail(loaded_client):
    emails = loaded_client.get("/emails").json()

    assert len(emails) == 5
    assert emails[0]["classification"] == "Personal"
    assert emails[0]["used_context"]["subject"] == "Dinner plans"

    personal = loaded_client.get("/emails", params={"category": "Personal"}).json()
    assert {e["id"] for e in personal} == {"mock-1", "mock-4"}


def test_reclassify_and_feedback_roundtrip(loaded_client):
    response = loaded_client.post("/emails/mock-3/reclassify", json={"category": "Personal"})

    assert response.status_code == 200
    moved = response.json()
    assert moved["classification"] == "Personal"
    assert moved["reasoning"] == "Manually reclassified by you."
    assert moved["reclassified_at"] is not None

    feedback = loaded_client.get("/feedback").json()
    assert len(feedback) == 1
    assert feedback[0]["sender"] == "FashionStore <promo@fashionstore.com>"
    assert feedback[0]["userClassification"] == "Personal"

    timestamp = feedback[0]["timestamp"]
    assert loaded_client.delete(f"/feedback/{timestamp}").json()["deleted"] is True
    assert loaded_client.delete(f"/feedback/{timestamp}").json()["deleted"] is False
    assert loaded_client.get("/feedback").json() == []


def test_reclassify_errors(loaded_client):
    assert loaded_client.post("/emails/nope/reclassify", json={"category": "Personal"}).status_code == 404
    assert loaded_client.post("/emails/mock-1/reclassify", json={"category": "Unclassified"}).status_code == 422
    assert loaded_client.post("/emails/mock-1/reclassify", json={"category": "Spam"}).status_code == 422


def test_reply(loaded_client):
    response = loaded_client.post("/emails/mock-1/reply", json={"body": "See you at noon!"})
    assert response.status_code == 200
    assert app.state.email_fetcher.sent_replies[0]["body"] == "See you at noon!"

    assert loaded_client.post("/emails/mock-1/reply", json={"body": "  "}).status_code == 422


def test_mark_not_personal_read(loaded_client):
    response = loaded_client.post("/emails/mark-read", json={"category": "Not Personal"})

    assert response.json() == {"status": "success", "marked": 3, "remaining": 2}
    assert sorted(app.state.email_fetcher.read_ids) == ["mock-2", "mock-3", "mock-5"]
    assert {e["id"] for e in loaded_client.get("/emails").json()} == {"mock-1", "mock-4"}


def test_mark_unclassified_read_is_rejected(loaded_client):
    response = loaded_client.post("/emails/mark-read", json={"category": "Unclassified"})

    assert response.status_code == 422
    assert app.state.email_fetcher.read_ids == []
    assert len(loaded_client.get("/emails").json()) == 5
    assert loaded_client.get("/emails", params={"category": "Unclassified"}).json() == []


def test_refresh_classifies_live_mail(client):
    config = app.state.config
    config.use_mock_data = False
    fake = FakeGenAIClient(json_reply("Not Personal", "Bulk mail."))
    store = app.state.orchestrator.feedback_store
    engine = ClassificationEngine(config, store, client_factory=lambda api_key: fake)
    app.dependency_overrides[get_config] = lambda: config
    app.dependency_overrides[get_orchestrator] = lambda: ClassificationOrchestrator(engine, store)

    emails = client.post("/emails/refresh", params={"limit": 2}, headers={"X-Gemini-Api-Key": "k"}).json()

    assert len(emails) == 2
    assert all(e["classification"] == "Not Personal" for e in emails)
    assert all(e["reasoning"] == "Bulk mail." for e in emails)
    assert len(fake.calls) == 2
