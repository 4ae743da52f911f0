import asyncio
import json
import logging
from typing import Callable, List, Optional, Sequence

from google.genai import types

from focusmail.config import FocusMailConfig
from focusmail.lib.shared.models.email import (
    DECISION_CATEGORIES,
    ClassificationCategory,
    ClassificationResult,
    EmailMessage,
)
from focusmail.lib.shared.models.feedback import FeedbackEntry
from focusmail.lib.shared.providers.llm import get_llm_provider
from focusmail.services.email.constants import (
    CLASSIFICATION_PROMPT,
    HISTORY_HEADER,
    HISTORY_LINE,
    NO_HISTORY,
    PROMPT_INJECTION_REASONING,
    SERVICE_ERROR_REASONING,
    UNPARSEABLE_REASONING,
)
from focusmail.services.email.retriever import RelevanceRetriever
from focusmail.services.feedback.store import FeedbackStore
from focusmail.services.security.guard import PromptGuard

logger = logging.getLogger(__name__)

# Malformed model output falls back to Not Personal. An unreachable service
# yields Unclassified instead, so callers can tell outage from noncompliance.
SAFE_DEFAULT_CATEGORY = ClassificationCategory.NOT_PERSONAL


def response_schema() -> types.Schema:
    return types.Schema(
        type=types.Type.OBJECT,
        properties={
            "category": types.Schema(
                type=types.Type.STRING,
                enum=[c.value for c in DECISION_CATEGORIES],
            ),
            "reasoning": types.Schema(type=types.Type.STRING),
        },
        required=["category", "reasoning"],
    )


def build_prompt(message: EmailMessage, precedents: Sequence[FeedbackEntry]) -> str:
    if precedents:
        history = "\n".join(
            [HISTORY_HEADER]
            + [
                HISTORY_LINE.format(subject=p.subject, snippet=p.snippet, classification=p.user_classification)
                for p in precedents
            ]
        )
    else:
        history = NO_HISTORY

    return CLASSIFICATION_PROMPT.format(
        history=history,
        sender=message.sender,
        subject=message.subject,
        snippet=message.snippet,
    )


def parse_response(text: Optional[str], used_context: Optional[FeedbackEntry] = None) -> ClassificationResult:
    """Validates the model's JSON against the schema, falling back field by field."""
    try:
        payload = json.loads(text or "")
    except ValueError:
        logger.warning(f"Unparseable classification response: {str(text)[:200]!r}")
        payload = None

    if not isinstance(payload, dict):
        return ClassificationResult(
            category=SAFE_DEFAULT_CATEGORY,
            reasoning=UNPARSEABLE_REASONING,
            used_context=used_context,
        )

    category = SAFE_DEFAULT_CATEGORY
    raw_category = payload.get("category")
    if raw_category in {c.value for c in DECISION_CATEGORIES}:
        category = ClassificationCategory(raw_category)
    else:
        logger.warning(f"Model returned invalid category {raw_category!r}, using {SAFE_DEFAULT_CATEGORY.value}")

    reasoning = payload.get("reasoning")
    if not isinstance(reasoning, str) or not reasoning.strip():
        reasoning = UNPARSEABLE_REASONING

    return ClassificationResult(category=category, reasoning=reasoning, used_context=used_context)


class ClassificationEngine:
    def __init__(
        self,
        config: FocusMailConfig,
        feedback_store: FeedbackStore,
        retriever: Optional[RelevanceRetriever] = None,
        prompt_guard: Optional[PromptGuard] = None,
        client_factory: Callable = get_llm_provider,
    ):
        self.config = config
        self.feedback_store = feedback_store
        self.retriever = retriever or RelevanceRetriever(default_limit=config.retrieval_limit)
        self.prompt_guard = prompt_guard if prompt_guard is not None else PromptGuard()
        self.client_factory = client_factory

    def retrieve_precedents(self, message: EmailMessage, user_id: str) -> List[FeedbackEntry]:
        history = self.feedback_store.load(user_id)
        return self.retriever.retrieve(message, history, limit=self.config.retrieval_limit)

    async def classify(self, message: EmailMessage, api_key: str, user_id: str) -> ClassificationResult:
        """Classify one message. Never raises; failures come back as data."""
        try:
            # The store may hit disk and decrypt, keep that off the event loop
            precedents = await asyncio.to_thread(self.retrieve_precedents, message, user_id)
            top_example = self.retriever.top_context(precedents)

            flagged = self.prompt_guard.first_match(f"{message.subject} {message.snippet}") if self.config.prompt_guard_enabled else None
            if flagged:
                logger.warning(f"Security Alert: not sending '{message.subject[:30]}...' to the model ({flagged})")
                return ClassificationResult(
                    category=SAFE_DEFAULT_CATEGORY,
                    reasoning=PROMPT_INJECTION_REASONING,
                    used_context=top_example,
                )

            prompt = build_prompt(message, precedents)
            client = self.client_factory(api_key)
            response = await client.aio.models.generate_content(
                model=self.config.gemini_model,
                contents=prompt,
                config=types.GenerateContentConfig(
                    response_mime_type="application/json",
                    response_schema=response_schema(),
                ),
            )
            text = response.text
        except Exception as e:
            logger.error(f"Gemini classification error for message {message.id}: {e}")
            return ClassificationResult(
                category=ClassificationCategory.UNCLASSIFIED,
                reasoning=SERVICE_ERROR_REASONING,
            )

        return parse_response(text, used_context=top_example)
