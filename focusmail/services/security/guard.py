import re
import logging
import unicodedata
from typing import Optional

logger = logging.getLogger(__name__)

# Label-steering phrases are checked alongside the usual instruction overrides
INJECTION_PATTERNS = {
    "instruction_override": r"ignore\s+(all\s+)?(previous|prior|above)\s+instructions",
    "system_prompt": r"ignore\s+system\s+prompt|override\s+system|system\s+override",
    "jailbreak": r"jailbreak|DAN\s+mode",
    "label_steering": r"(always\s+)?classify\s+(this|me)\s+as\s+\"?(not\s+)?personal",
}


class PromptGuard:
    """
    Screens sender-controlled email text before it is placed in a
    classification prompt.
    """
    def __init__(self, patterns: Optional[dict] = None):
        self.patterns = {
            name: re.compile(expr, re.IGNORECASE)
            for name, expr in (patterns or INJECTION_PATTERNS).items()
        }

    def first_match(self, text: str) -> Optional[str]:
        """Name of the first pattern found in `text`, or None."""
        # NFKC folds full-width look-alikes, "ｉｇｎｏｒｅ" -> "ignore"
        folded = unicodedata.normalize('NFKC', text or "")
        for name, pattern in self.patterns.items():
            if pattern.search(folded):
                return name
        return None

    def validate(self, text: str) -> bool:
        """True if safe, False if suspicious."""
        return self.first_match(text) is None
