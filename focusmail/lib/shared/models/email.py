from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

from focusmail.lib.shared.models.feedback import FeedbackEntry


class ClassificationCategory(str, Enum):
    PERSONAL = "Personal"
    NOT_PERSONAL = "Not Personal"
    UNCLASSIFIED = "Unclassified"


# Categories the model may answer with and the user may correct to
DECISION_CATEGORIES = (ClassificationCategory.PERSONAL, ClassificationCategory.NOT_PERSONAL)


@dataclass
class EmailMessage:
    id: str
    thread_id: Optional[str]
    sender: str  # raw "Name <address>" From header
    subject: str
    snippet: str
    date: str = ""
    body: str = ""  # plain text, fed to the classifier
    html_body: str = ""  # for display only
    headers: Dict[str, str] = field(default_factory=dict)
    classification: ClassificationCategory = ClassificationCategory.UNCLASSIFIED
    original_classification: Optional[ClassificationCategory] = None
    reasoning: Optional[str] = None
    used_context: Optional[FeedbackEntry] = None
    reclassified_at: Optional[int] = None  # ms


@dataclass
class ClassificationResult:
    category: ClassificationCategory
    reasoning: str
    used_context: Optional[FeedbackEntry] = None
