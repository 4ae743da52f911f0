import asyncio
import logging
import time
from dataclasses import replace
from typing import List, Optional, Sequence, Tuple

from focusmail.lib.shared.models.email import (
    ClassificationCategory,
    ClassificationResult,
    EmailMessage,
)
from focusmail.lib.shared.models.feedback import FeedbackEntry
from focusmail.services.email.classifier import ClassificationEngine
from focusmail.services.email.constants import MANUAL_RECLASSIFICATION_REASONING, SERVICE_ERROR_REASONING
from focusmail.services.feedback.store import FeedbackStore

logger = logging.getLogger(__name__)


class ClassificationOrchestrator:
    """
    Runs the classifier over a batch of fetched messages and feeds manual
    reclassifications back into the user's feedback log.
    """

    def __init__(self, engine: ClassificationEngine, feedback_store: FeedbackStore):
        self.engine = engine
        self.feedback_store = feedback_store

    async def _classify_one(self, message: EmailMessage, api_key: str, user_id: str) -> EmailMessage:
        try:
            result = await self.engine.classify(message, api_key, user_id)
        except Exception as e:
            # The engine maps its own failures; this covers anything it missed
            logger.error(f"Unexpected classification failure for {message.id}: {e}")
            result = ClassificationResult(ClassificationCategory.UNCLASSIFIED, SERVICE_ERROR_REASONING)

        return replace(
            message,
            classification=result.category,
            original_classification=result.category,
            reasoning=result.reasoning,
            used_context=result.used_context,
        )

    async def classify_batch(self, messages: Sequence[EmailMessage], api_key: str, user_id: str) -> List[EmailMessage]:
        """Classifies every message concurrently and returns them in input order."""
        if not messages:
            return []

        logger.info(f"Classifying {len(messages)} message(s) for {user_id}")
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(self._classify_one(m, api_key, user_id)) for m in messages]

        return [task.result() for task in tasks]

    # --- Reclassification ---

    @staticmethod
    def apply_reclassification(message: EmailMessage, new_category: ClassificationCategory, now_ms: Optional[int] = None) -> EmailMessage:
        return replace(
            message,
            classification=ClassificationCategory(new_category),
            reclassified_at=now_ms if now_ms is not None else int(time.time() * 1000),
            reasoning=MANUAL_RECLASSIFICATION_REASONING,
        )

    def record_feedback(self, message: EmailMessage, new_category: ClassificationCategory, user_id: str) -> FeedbackEntry:
        return self.feedback_store.save(message, new_category, user_id)

    def reclassify(self, message: EmailMessage, new_category: ClassificationCategory, user_id: str) -> EmailMessage:
        """Records the correction, then returns the message as it should now display."""
        entry = self.record_feedback(message, new_category, user_id)
        return self.apply_reclassification(message, new_category, now_ms=entry.timestamp)

    # --- Feedback log ---

    def get_feedback_log(self, user_id: str) -> List[FeedbackEntry]:
        return self.feedback_store.load(user_id)

    def delete_feedback_entry(self, timestamp: int, user_id: str) -> bool:
        return self.feedback_store.delete(timestamp, user_id)

    # --- Bulk mark-as-read ---

    @staticmethod
    def select_for_mark_read(messages: Sequence[EmailMessage], category: ClassificationCategory) -> List[EmailMessage]:
        category = ClassificationCategory(category)
        if category == ClassificationCategory.PERSONAL:
            wanted = {ClassificationCategory.PERSONAL}
        elif category == ClassificationCategory.UNCLASSIFIED:
            raise ValueError("Unclassified is not a column; mark Personal or Not Personal")
        else:
            # The "Not Personal" column also holds anything left unclassified
            wanted = {ClassificationCategory.NOT_PERSONAL, ClassificationCategory.UNCLASSIFIED}
        return [m for m in messages if m.classification in wanted]

    def mark_all_read(self, messages: Sequence[EmailMessage], category: ClassificationCategory, mail_client) -> Tuple[bool, List[EmailMessage]]:
        """Marks one column as read. Returns (success, messages still in the inbox)."""
        selected = self.select_for_mark_read(messages, category)
        if not selected:
            return True, list(messages)

        ids = [m.id for m in selected]
        if not mail_client.mark_read(ids):
            logger.error(f"Failed to mark {len(ids)} message(s) as read")
            return False, list(messages)

        done = set(ids)
        return True, [m for m in messages if m.id not in done]

    @staticmethod
    def send_reply(message: EmailMessage, body: str, mail_client) -> bool:
        if not body or not body.strip():
            raise ValueError("Reply body is empty")
        return mail_client.send_reply(message, body)
