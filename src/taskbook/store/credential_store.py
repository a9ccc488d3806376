# src/taskbook/store/credential_store.py

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

from ..core.errors import PersistenceError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_CREDENTIAL_KEY = "openai_api_key"


class FileCredentialStore:
    """
    Stores exactly one secret in a private JSON file under a fixed key.

    The file is created 0600 and replaced atomically. There is no
    encryption beyond what the host filesystem provides.
    """

    def __init__(self, path: str | Path, *, key: str = DEFAULT_CREDENTIAL_KEY) -> None:
        self._path = Path(path)
        self._key = key

    def _read_all(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text("utf-8"))
        except (OSError, ValueError):
            logger.warning("Credential file %s is unreadable; treating it as empty", self._path)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items() if isinstance(v, str)}

    def _write_all(self, data: dict[str, str]) -> None:
        tmp = self._path.with_suffix(".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            # O_CREAT only applies the mode to a new file
            tmp.unlink(missing_ok=True)
            fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(json.dumps(data, indent=2))
            os.replace(tmp, self._path)
        except OSError as e:
            raise PersistenceError(f"Failed to write credential file {self._path}: {e}") from e

    def save(self, secret: str) -> None:
        secret = (secret or "").strip()
        if not secret:
            raise ValidationError("API key must not be empty.")
        data = self._read_all()
        data[self._key] = secret
        self._write_all(data)
        logger.info("Credential saved key=%s", self._key)

    def load(self) -> str | None:
        value = self._read_all().get(self._key, "").strip()
        return value or None

    def clear(self) -> None:
        data = self._read_all()
        if self._key not in data:
            return
        del data[self._key]
        if data:
            self._write_all(data)
        else:
            try:
                self._path.unlink(missing_ok=True)
            except OSError as e:
                raise PersistenceError(f"Failed to remove credential file {self._path}: {e}") from e
        logger.info("Credential cleared key=%s", self._key)

    def exists(self) -> bool:
        return self.load() is not None
