from typing import Dict, List

from focusmail.config import FocusMailConfig
from focusmail.lib.shared.models.email import EmailMessage
from focusmail.services.email.providers.gmail import GmailService


class EmailFetcher:
    def __init__(self, config: FocusMailConfig):
        self.config = config
        # In the future, this could be a map of providers or factory
        self.gmail_provider = GmailService(config)

    def authenticate(self) -> bool:
        return self.gmail_provider.authenticate()

    def get_user_profile(self) -> Dict[str, str]:
        return self.gmail_provider.get_user_profile()

    def fetch_unread(self, limit: int = 10) -> List[EmailMessage]:
        return self.gmail_provider.fetch_unread(limit)

    def send_reply(self, message: EmailMessage, body: str) -> bool:
        return self.gmail_provider.send_reply(message, body)

    def mark_read(self, ids: List[str]) -> bool:
        return self.gmail_provider.mark_read(ids)

    @property
    def creds(self):
        return self.gmail_provider.creds
