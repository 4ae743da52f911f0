import base64
import logging
import os
from typing import Optional

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class DataEncryptor:
    """
    Encrypts the persisted feedback logs at rest.
    Uses Fernet (symmetric encryption).
    """
    def __init__(self, key: Optional[str] = None):
        if not key:
            key = os.getenv("FOCUSMAIL_ENCRYPTION_KEY")

        if not key:
            # Dev/demo fallback, NOT SECURE
            logger.warning("FOCUSMAIL_ENCRYPTION_KEY not set. Using insecure default key for development.")
            key = base64.urlsafe_b64encode(b"focusmail_insecure_dev_key_00000")

        self.fernet = Fernet(key)

    def encrypt(self, text: str) -> str:
        if not text:
            return ""
        return self.fernet.encrypt(text.encode()).decode()

    def decrypt(self, token: str) -> Optional[str]:
        """Returns None when the token cannot be decrypted with this key."""
        if not token:
            return ""
        try:
            return self.fernet.decrypt(token.encode()).decode()
        except (InvalidToken, UnicodeError) as e:
            logger.warning(f"Decryption failed: {e!r}")
            return None
