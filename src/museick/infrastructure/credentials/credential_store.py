"""Credential store implementations (catalog access token + status flags).

Hey future me - there is exactly ONE storage medium per process, pick it when
building the ServiceContainer:

- FileCredentialStore: JSON file on disk, survives restarts, deleted on clear()
  (sign-out or unrecoverable refresh failure). Default for real use.
- InMemoryCredentialStore: process lifetime only. Tests, throwaway sessions.

Neither validates the token (opaque string) and neither broadcasts - whoever
writes publishes the AuthEvent.
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from museick.domain.ports import CredentialStore

logger = logging.getLogger(__name__)

_TOKEN_KEY = "spotify_access_token"
_FLAGS_KEY = "flags"


class InMemoryCredentialStore(CredentialStore):
    """Credential store living only as long as the process."""

    def __init__(self, token: str | None = None) -> None:
        self._token = token
        self._flags: dict[str, str] = {}

    def get(self) -> str | None:
        return self._token

    def set(self, token: str) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None
        self._flags.clear()

    def set_flag(self, name: str, value: str) -> None:
        self._flags[name] = value

    def consume_flag(self, name: str) -> str | None:
        return self._flags.pop(name, None)


class FileCredentialStore(CredentialStore):
    """Credential store persisted as a small JSON document.

    The file is re-read on every get() so a token written by another process
    (e.g. a CLI connecting Spotify) is picked up - best effort, no locking.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, Any]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            # Corrupt file = no credentials. Next set() overwrites it.
            logger.warning("Credential file %s is not valid JSON, ignoring", self._path)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        # Token is a bearer secret - owner read/write only.
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh)
        os.replace(tmp_path, self._path)

    def get(self) -> str | None:
        token = self._load().get(_TOKEN_KEY)
        return token if isinstance(token, str) and token else None

    def set(self, token: str) -> None:
        data = self._load()
        data[_TOKEN_KEY] = token
        self._save(data)

    def clear(self) -> None:
        try:
            self._path.unlink()
        except FileNotFoundError:
            pass
        logger.debug("Credential store cleared (%s)", self._path)

    def set_flag(self, name: str, value: str) -> None:
        data = self._load()
        flags = data.get(_FLAGS_KEY)
        if not isinstance(flags, dict):
            flags = {}
        flags[name] = value
        data[_FLAGS_KEY] = flags
        self._save(data)

    def consume_flag(self, name: str) -> str | None:
        data = self._load()
        flags = data.get(_FLAGS_KEY)
        if not isinstance(flags, dict) or name not in flags:
            return None
        value = flags.pop(name)
        data[_FLAGS_KEY] = flags
        self._save(data)
        return str(value)
