import json
import logging
import time
from typing import Callable, List

from focusmail.lib.shared.models.email import DECISION_CATEGORIES, ClassificationCategory, EmailMessage
from focusmail.lib.shared.models.feedback import FeedbackEntry
from focusmail.services.email.retriever import normalize_sender
from focusmail.services.feedback.backends import KeyValueStore

logger = logging.getLogger(__name__)

STORAGE_KEY_PREFIX = "focusmail_training_data"
DEFAULT_MAX_ENTRIES = 100


def _now_ms() -> int:
    return int(time.time() * 1000)


class FeedbackStore:
    """
    Per-user, bounded log of classification corrections, newest first.

    Each user's log lives under its own key; nothing is ever read across users.
    Concurrent writers are not isolated: the last full-log write wins.
    """

    def __init__(self, backend: KeyValueStore, max_entries: int = DEFAULT_MAX_ENTRIES, clock: Callable[[], int] = _now_ms):
        self.backend = backend
        self.max_entries = max_entries
        self.clock = clock

    @staticmethod
    def storage_key(user_id: str) -> str:
        return f"{STORAGE_KEY_PREFIX}_{user_id}"

    def load(self, user_id: str) -> List[FeedbackEntry]:
        """Returns the user's log. Missing or corrupt data yields an empty log."""
        try:
            raw = self.backend.get(self.storage_key(user_id))
        except Exception as e:
            logger.warning(f"Could not read feedback log for {user_id}: {e}")
            return []

        if not raw:
            return []

        try:
            records = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Corrupt feedback log for {user_id}, treating as empty: {e}")
            return []

        if not isinstance(records, list):
            logger.warning(f"Feedback log for {user_id} is not a list, treating as empty")
            return []

        entries = []
        for record in records:
            try:
                entries.append(FeedbackEntry.from_dict(record))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Skipping malformed feedback record for {user_id}: {e!r}")
        return entries

    def save(self, message: EmailMessage, corrected_category: ClassificationCategory, user_id: str) -> FeedbackEntry:
        corrected_category = ClassificationCategory(corrected_category)
        if corrected_category not in DECISION_CATEGORIES:
            raise ValueError(f"Cannot record feedback with category {corrected_category.value!r}")

        history = self.load(user_id)

        # Keep timestamps strictly increasing so they stay unique ids
        timestamp = self.clock()
        newest = max((h.timestamp for h in history), default=None)
        if newest is not None and timestamp <= newest:
            timestamp = newest + 1

        entry = FeedbackEntry(
            subject=message.subject,
            sender=message.sender,
            snippet=message.snippet,
            user_classification=corrected_category.value,
            timestamp=timestamp,
        )

        # One entry per (normalized sender, exact subject); the new one wins
        sender_key = normalize_sender(entry.sender)
        unique_history = [
            h for h in history
            if not (h.subject == entry.subject and normalize_sender(h.sender) == sender_key)
        ]

        # Insertion order is authoritative, truncate by position
        updated = [entry] + unique_history
        updated = updated[:self.max_entries]

        self._persist(user_id, updated)
        logger.info(f"Recorded feedback for {user_id}: {sender_key} / {entry.subject!r} -> {entry.user_classification}")
        return entry

    def delete(self, timestamp: int, user_id: str) -> bool:
        """Removes the entry with `timestamp`. Returns False (and writes nothing) if absent."""
        history = self.load(user_id)
        updated = [h for h in history if h.timestamp != timestamp]
        if len(updated) == len(history):
            return False
        self._persist(user_id, updated)
        return True

    def _persist(self, user_id: str, entries: List[FeedbackEntry]) -> None:
        payload = json.dumps([e.to_dict() for e in entries], ensure_ascii=False)
        self.backend.set(self.storage_key(user_id), payload)
