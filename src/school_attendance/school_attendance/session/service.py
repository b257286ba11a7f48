from __future__ import annotations

import json
import logging
from typing import Callable, Optional

from ..core.constants import SESSION_TOKEN_KEY, SESSION_USER_KEY
from .model import CurrentUser
from .store import SessionStore

logger = logging.getLogger(__name__)


class SessionService:
    """Reads and clears the persisted session.

    The auth token is read on every request; the user is read as a snapshot.
    """

    def __init__(self, store: SessionStore, *, on_signed_out: Optional[Callable[[], None]] = None):
        self._store = store
        self._on_signed_out = on_signed_out

    def get_token(self) -> Optional[str]:
        return self._store.get_item(SESSION_TOKEN_KEY)

    def load_current_user(self) -> Optional[CurrentUser]:
        raw = self._store.get_item(SESSION_USER_KEY)
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("stored user is not valid JSON")
            return None
        if not isinstance(data, dict):
            return None
        return CurrentUser.from_api(data)

    def sign_out(self) -> None:
        self._store.delete_item(SESSION_TOKEN_KEY)
        self._store.delete_item(SESSION_USER_KEY)
        logger.info("session cleared, redirecting to login")
        if self._on_signed_out:
            self._on_signed_out()
