# backend/services/session.py
from typing import Any, Dict, Optional

from utils.local_store import LocalStore, TOKEN_KEY, USER_KEY


class Session:
    """Bearer credential of the current visitor, kept in the local store."""

    def __init__(self, store: LocalStore):
        self.store = store

    @property
    def token(self) -> Optional[str]:
        token = self.store.get(TOKEN_KEY)
        user = self.store.get(USER_KEY)
        if not token or user is None:
            return None
        return token

    @property
    def user(self) -> Optional[Dict[str, Any]]:
        return self.store.get(USER_KEY)

    @property
    def is_authenticated(self) -> bool:
        return self.token is not None

    def login(self, token: str, user: Optional[Dict[str, Any]] = None) -> None:
        self.store.set(TOKEN_KEY, token)
        self.store.set(USER_KEY, user or {})

    def clear(self) -> None:
        self.store.delete(TOKEN_KEY)
        self.store.delete(USER_KEY)

    def auth_headers(self) -> Dict[str, str]:
        token = self.token
        return {"Authorization": f"Bearer {token}"} if token else {}
