import hashlib
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Protocol

from focusmail.services.security.encryption import DataEncryptor

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...


class FileKeyValueStore:
    """
    Stores each key in its own file under `directory`, encrypted at rest.
    Writes go to a temp file that replaces the target, so a reader never sees
    a half-written value.
    """

    def __init__(self, directory: str, encryptor: DataEncryptor):
        self.directory = Path(directory)
        self.encryptor = encryptor
        self.directory.mkdir(parents=True, exist_ok=True)

    def _path_for(self, key: str) -> Path:
        # Keys embed user emails, hash them into safe file names
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.directory / f"{digest}.enc"

    def get(self, key: str) -> Optional[str]:
        path = self._path_for(key)
        if not path.exists():
            return None
        try:
            token = path.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning(f"Could not read {path}: {e}")
            return None
        return self.encryptor.decrypt(token)

    def set(self, key: str, value: str) -> None:
        path = self._path_for(key)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=".tmp-", suffix=".enc")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                tmp.write(self.encryptor.encrypt(value))
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
