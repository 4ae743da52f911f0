import os
from typing import List, Optional

from dotenv import load_dotenv

from focusmail.lib.shared.models.util import Environment


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class FocusMailConfig:
    def __init__(self):
        load_dotenv()

        # Determine Environment
        env_str = os.getenv("FOCUSMAIL_ENV", "dev").lower()
        try:
            self.env = Environment(env_str)
        except ValueError:
            self.env = Environment.DEV

        self.gemini_api_key = os.getenv("GEMINI_API_KEY")
        self.gemini_model = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
        self.gmail_credentials_path = os.getenv("GMAIL_CREDENTIALS_PATH", "credentials.json")
        self.encryption_key = os.getenv("FOCUSMAIL_ENCRYPTION_KEY")

        self.feedback_log_limit = int(os.getenv("FEEDBACK_LOG_LIMIT", 100))
        self.retrieval_limit = int(os.getenv("RETRIEVAL_LIMIT", 5))
        self.fetch_limit = int(os.getenv("FETCH_LIMIT", 10))
        self.prompt_guard_enabled = _env_bool("PROMPT_GUARD_ENABLED", "false")

        self.user_emails: List[str] = []

        # Environment Configuration
        if self.env == Environment.TEST:
            self.feedback_store_path = "./test_feedback_store"
            self.use_mock_data = True
        elif self.env == Environment.DEV:
            self.feedback_store_path = os.getenv("FEEDBACK_STORE_PATH", "./feedback_store")
            self.use_mock_data = _env_bool("USE_MOCK_DATA", "false")
        else:  # PROD
            self.feedback_store_path = os.getenv("FEEDBACK_STORE_PATH", "./feedback_store")
            self.use_mock_data = False

    def set_user_email(self, email_address: str):
        if email_address and email_address not in self.user_emails:
            self.user_emails.insert(0, email_address)

    def get_user_email(self) -> Optional[str]:
        return self.user_emails[0] if self.user_emails else None
