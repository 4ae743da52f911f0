import json
from types import SimpleNamespace
from typing import Callable, Iterable, List

from focusmail.lib.shared.models.email import ClassificationCategory, EmailMessage
from focusmail.lib.shared.models.feedback import FeedbackEntry
from focusmail.services.feedback.store import FeedbackStore


def make_email(id: str = "msg_1", sender: str = "Alice Smith <alice@example.com>", subject: str = "Lunch tomorrow?",
               snippet: str = "Are we still on for lunch at 12?", **overrides) -> EmailMessage:
    fields = dict(
        id=id,
        thread_id=f"thread_{id}",
        sender=sender,
        subject=subject,
        snippet=snippet,
        body=snippet,
    )
    fields.update(overrides)
    return EmailMessage(**fields)


def make_entry(sender: str = "alice@example.com", subject: str = "S1", timestamp: int = 1,
               classification: ClassificationCategory = ClassificationCategory.PERSONAL,
               snippet: str = "snippet") -> FeedbackEntry:
    return FeedbackEntry(
        subject=subject,
        sender=sender,
        snippet=snippet,
        user_classification=ClassificationCategory(classification).value,
        timestamp=timestamp,
    )


def make_log(count: int, sender_template: str = "sender{i}@example.com") -> List[FeedbackEntry]:
    """`count` distinct entries, newest first (timestamps count..1)."""
    return [
        make_entry(sender=sender_template.format(i=i), subject=f"Subject {i}", timestamp=i)
        for i in range(count, 0, -1)
    ]


def seed_log(store: FeedbackStore, user_id: str, entries: Iterable[FeedbackEntry]) -> None:
    """Writes a log straight to the backend, bypassing save()."""
    store.backend.set(store.storage_key(user_id), json.dumps([e.to_dict() for e in entries]))


USER = "me@example.com"
OTHER_USER = "someone.else@example.com"


class FakeModels:
    """Stands in for `client.aio.models`; each reply is computed by `responder(prompt)`."""

    def __init__(self, responder: Callable):
        self.responder = responder
        self.calls = []

    async def generate_content(self, model, contents, config=None):
        self.calls.append({"model": model, "contents": contents, "config": config})
        reply = self.responder(contents)
        if isinstance(reply, Exception):
            raise reply
        return SimpleNamespace(text=reply)


class FakeGenAIClient:
    def __init__(self, responder: Callable):
        self.aio = SimpleNamespace(models=FakeModels(responder))

    @property
    def calls(self):
        return self.aio.models.calls


def json_reply(category: str = "Personal", reasoning: str = "Direct note from a friend.") -> Callable:
    return lambda prompt: json.dumps({"category": category, "reasoning": reasoning})
