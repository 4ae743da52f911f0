import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List

from focusmail.config import FocusMailConfig
from focusmail.lib.shared.models.email import ClassificationCategory, EmailMessage
from focusmail.lib.shared.models.feedback import FeedbackEntry

logger = logging.getLogger(__name__)

DEMO_USER_EMAIL = "demo@example.com"


def _ago(**kwargs) -> str:
    return (datetime.now(timezone.utc) - timedelta(**kwargs)).isoformat()


def _html(text: str) -> str:
    return f'<div style="font-family: sans-serif;">{text}</div>'


def get_mock_emails() -> List[EmailMessage]:
    """Pre-classified inbox shown in demo mode."""
    personal = ClassificationCategory.PERSONAL
    not_personal = ClassificationCategory.NOT_PERSONAL
    return [
        EmailMessage(
            id="mock-1",
            thread_id="t-1",
            sender="Alice Smith <alice@example.com>",
            subject="Lunch tomorrow?",
            snippet="Hey, are we still on for lunch tomorrow at 12?",
            date=_ago(minutes=30),
            body="Hey,\n\nAre we still on for lunch tomorrow at 12? I was thinking of that new Italian place.\n\nBest,\nAlice",
            html_body=_html("Hey,<br><br>Are we still on for lunch tomorrow at 12? I was thinking of that new <strong>Italian place</strong>.<br><br>Best,<br>Alice"),
            classification=personal,
            original_classification=personal,
            reasoning="Direct correspondence from a specific person regarding a meeting.",
            used_context=FeedbackEntry(
                subject="Dinner plans",
                sender="Alice Smith <alice@example.com>",
                snippet="Want to grab dinner Friday?",
                user_classification=personal.value,
                timestamp=1,
            ),
        ),
        EmailMessage(
            id="mock-2",
            thread_id="t-2",
            sender="Analytics Bot <noreply@analytics.com>",
            subject="Weekly Analytics Report",
            snippet="Your weekly report is ready to view.",
            date=_ago(hours=2),
            body="Hello,\n\nYour weekly analytics report is ready. Click here to view dashboard.",
            html_body=_html("<h2>Weekly Report</h2><p>Your analytics are ready.</p>"),
            classification=not_personal,
            original_classification=not_personal,
            reasoning="Automated notification from a bot.",
            used_context=FeedbackEntry(
                subject="Monthly Analytics Report",
                sender="Analytics Bot <noreply@analytics.com>",
                snippet="Your monthly report is ready to view.",
                user_classification=not_personal.value,
                timestamp=2,
            ),
        ),
        EmailMessage(
            id="mock-3",
            thread_id="t-3",
            sender="FashionStore <promo@fashionstore.com>",
            subject="Summer Sale Starts Now!",
            snippet="Don't miss out on our summer sale! 50% off everything.",
            date=_ago(hours=5),
            body="Summer Sale!\n\nGet 50% off everything in store. valid until Sunday.",
            html_body=_html("<h1>50% OFF EVERYTHING</h1><p>Valid until Sunday</p>"),
            classification=not_personal,
            original_classification=not_personal,
            reasoning="Marketing email sent to a broad list.",
        ),
        EmailMessage(
            id="mock-4",
            thread_id="t-4",
            sender="Bob Jones <bob.jones@workplace.com>",
            subject="Review needed: Q3 Projections",
            snippet="Can you review the attached document before the meeting?",
            date=_ago(days=1),
            body="Hi,\n\nCan you review the attached document before the meeting on Friday?\n\nThanks,\nBob",
            html_body=_html("Hi,<br><br>Can you review the attached document before the meeting on Friday?<br><br>Thanks,<br>Bob"),
            classification=personal,
            original_classification=personal,
            reasoning="Work related request from a colleague.",
        ),
        EmailMessage(
            id="mock-5",
            thread_id="t-5",
            sender="Amazon <shipment@amazon.com>",
            subject="Order Shipped",
            snippet="Your order #12345 has been shipped!",
            date=_ago(days=2),
            body="Hi,\n\nYour order has been shipped and will arrive tomorrow.",
            html_body=_html("<h3>Order #12345 Shipped</h3><p>Your item is on the way.</p>"),
            classification=not_personal,
            original_classification=not_personal,
            reasoning="Transactional update.",
        ),
    ]


class DummyEmailFetcher:
    def __init__(self, config: FocusMailConfig):
        self.config = config
        self.creds = "mock_creds"
        self.sent_replies: List[Dict[str, str]] = []
        self.read_ids: List[str] = []

    def authenticate(self):
        return True

    def get_user_profile(self) -> Dict[str, str]:
        return {"email": DEMO_USER_EMAIL}

    def fetch_unread(self, limit: int = 10) -> List[EmailMessage]:
        read = set(self.read_ids)
        return [m for m in get_mock_emails() if m.id not in read][:limit]

    def send_reply(self, message: EmailMessage, body: str) -> bool:
        logger.info(f"Demo mode: simulated reply to {message.sender}")
        self.sent_replies.append({"id": message.id, "to": message.sender, "body": body})
        return True

    def mark_read(self, ids: List[str]) -> bool:
        self.read_ids.extend(ids)
        return True
