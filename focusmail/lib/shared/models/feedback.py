from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class FeedbackEntry:
    """A single user correction: sender + subject fingerprint -> chosen category."""
    subject: str
    sender: str
    snippet: str
    user_classification: str
    timestamp: int  # ms, unique within a user's log

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "sender": self.sender,
            "snippet": self.snippet,
            "userClassification": self.user_classification,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeedbackEntry":
        """Raises KeyError/TypeError/ValueError on a malformed record."""
        timestamp = data["timestamp"]
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            raise TypeError(f"timestamp must be a number, got {type(timestamp).__name__}")
        return cls(
            subject=str(data["subject"]),
            sender=str(data["sender"]),
            snippet=str(data.get("snippet", "")),
            user_classification=str(data["userClassification"]),
            timestamp=int(timestamp),
        )
