"""
Auth token storage.

Holds the bearer token and the identity fields (``token``, ``userType``,
``userId``) the backend issued at login. Every component that talks to
the backend reads credentials from the same store, and change
subscribers are told when a value is written so late logins can
trigger push initialisation.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

logger = logging.getLogger("bizpulse.auth")

TOKEN_KEY = "token"
USER_TYPE_KEY = "userType"
USER_ID_KEY = "userId"

ChangeCallback = Callable[[str, Optional[str]], None]


@dataclass(frozen=True)
class Credentials:
    """Snapshot of the stored identity."""
    token: Optional[str] = None
    user_type: Optional[str] = None
    user_id: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.token and self.user_type and self.user_id)

    def bearer(self) -> Dict[str, str]:
        """Authorization header for HTTP calls (empty without a token)."""
        if not self.token:
            return {}
        return {"Authorization": f"Bearer {self.token}"}


class TokenStore:
    """
    Key/value credential store with change notification.

    Subclasses implement ``_load`` and ``_save``; the base keeps the
    values in memory.
    """

    def __init__(self):
        self._values: Dict[str, str] = self._load()
        self._subscribers: List[ChangeCallback] = []

    def _load(self) -> Dict[str, str]:
        return {}

    def _save(self, values: Dict[str, str]) -> None:
        pass

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: Optional[str]) -> None:
        """Write (or, with ``None``, delete) a value and notify subscribers."""
        if value is None:
            if key not in self._values:
                return
            del self._values[key]
        else:
            self._values[key] = value
        self._save(dict(self._values))
        self._notify(key, value)

    def credentials(self) -> Credentials:
        return Credentials(
            token=self.get(TOKEN_KEY),
            user_type=self.get(USER_TYPE_KEY),
            user_id=self.get(USER_ID_KEY),
        )

    def store_credentials(
        self,
        token: Optional[str],
        user_type: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> None:
        # token last, so subscribers reacting to it see the full identity
        self.set(USER_TYPE_KEY, user_type)
        self.set(USER_ID_KEY, user_id)
        self.set(TOKEN_KEY, token)

    def clear(self) -> None:
        self.store_credentials(None, None, None)

    def subscribe(self, callback: ChangeCallback) -> None:
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: ChangeCallback) -> None:
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def _notify(self, key: str, value: Optional[str]) -> None:
        for callback in list(self._subscribers):
            try:
                callback(key, value)
            except Exception:
                logger.exception("Token store subscriber %r failed", callback)


class MemoryTokenStore(TokenStore):
    """In-process store; optionally seeded with credentials."""

    def __init__(
        self,
        token: Optional[str] = None,
        user_type: Optional[str] = None,
        user_id: Optional[str] = None,
    ):
        super().__init__()
        seed = {TOKEN_KEY: token, USER_TYPE_KEY: user_type, USER_ID_KEY: user_id}
        self._values.update({k: v for k, v in seed.items() if v is not None})


class FileTokenStore(TokenStore):
    """
    JSON-file backed store.

    The file is written with owner-only permissions. A missing or
    unreadable file starts an empty store.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()
        super().__init__()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable token file %s: %s", self.path, exc)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items() if v is not None}

    def _save(self, values: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(values, indent=2), encoding="utf-8")
        os.chmod(tmp, 0o600)
        os.replace(tmp, self.path)
