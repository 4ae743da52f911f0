import re
import logging
from typing import List, Optional, Sequence

from focusmail.lib.shared.models.email import EmailMessage
from focusmail.lib.shared.models.feedback import FeedbackEntry

logger = logging.getLogger(__name__)

_BRACKETED_ADDRESS = re.compile(r"<([^>]+)>")


def normalize_sender(sender: str) -> str:
    """'Bob <Bob@X.com>' -> 'bob@x.com'; anything without brackets is just lower-cased."""
    sender = sender or ""
    match = _BRACKETED_ADDRESS.search(sender)
    return match.group(1).lower() if match else sender.lower()


def relevance_score(target: EmailMessage, candidate: FeedbackEntry) -> int:
    # Exact sender match only; display names and subjects don't count
    return 1 if normalize_sender(target.sender) == normalize_sender(candidate.sender) else 0


class RelevanceRetriever:
    def __init__(self, default_limit: int = 5):
        self.default_limit = default_limit

    def retrieve(self, target: EmailMessage, feedback_log: Sequence[FeedbackEntry], limit: Optional[int] = None) -> List[FeedbackEntry]:
        """Past corrections from the target's sender, newest first, at most `limit`."""
        limit = self.default_limit if limit is None else limit
        if limit <= 0 or not feedback_log:
            return []

        # The log is stored newest-first, so filtering keeps recency order
        matches = [entry for entry in feedback_log if relevance_score(target, entry) > 0]
        logger.debug(f"Retrieved {len(matches)} precedent(s) for {normalize_sender(target.sender)}")
        return matches[:limit]

    @staticmethod
    def top_context(results: Sequence[FeedbackEntry]) -> Optional[FeedbackEntry]:
        return results[0] if results else None
