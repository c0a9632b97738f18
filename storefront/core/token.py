# storefront/core/token.py
from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from jose import jwt, JWTError

from storefront.config import settings
from storefront.database import StorageAdapter

logger = logging.getLogger(__name__)


def _unverified_claims(token: str) -> Optional[Dict[str, Any]]:
    """
    Read the claims of a JWT without checking its signature. The backend
    verifies tokens; the client only reads `exp` and the user id. Opaque tokens
    give None.
    """
    try:
        return jwt.get_unverified_claims(token)
    except JWTError:
        return None


class TokenHolder:
    """
    Owns the bearer credential of the signed-in shopper. The credential lives
    from a successful sign-in until clear() or its expiry; it is kept apart
    from the cart record, optionally mirrored to storage under its own key.
    """

    def __init__(self, storage: Optional[StorageAdapter] = None, storage_key: Optional[str] = None,
                 persist: Optional[bool] = None):
        self._storage = storage
        self.storage_key = storage_key or settings.TOKEN_STORAGE_KEY
        self.persist = settings.PERSIST_TOKEN if persist is None else bool(persist)
        self._token: Optional[str] = None
        if self._storage is not None and self.persist:
            self._token = self._storage.get_item(self.storage_key) or None

    def set(self, token: str) -> None:
        if not token:
            raise ValueError("Refusing to store an empty token")
        self._token = str(token)
        if self._storage is not None and self.persist:
            self._storage.set_item(self.storage_key, self._token)
        logger.debug("Stored auth token %s...", self._token[:10])

    def clear(self) -> None:
        self._token = None
        if self._storage is not None and self.persist:
            self._storage.remove_item(self.storage_key)

    def expires_at(self) -> Optional[datetime]:
        if not self._token:
            return None
        claims = _unverified_claims(self._token)
        if not claims or claims.get("exp") is None:
            return None
        try:
            return datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError):
            return None

    def subject(self) -> Optional[str]:
        """User id carried in the token (`sub`, `id` or `userId` claim), if readable."""
        if not self._token:
            return None
        claims = _unverified_claims(self._token) or {}
        for name in ("sub", "id", "userId"):
            if claims.get(name):
                return str(claims[name])
        return None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        exp = self.expires_at()
        if exp is None:
            return False
        return (now or datetime.now(timezone.utc)) >= exp

    def get(self) -> Optional[str]:
        """Current token, or None when absent or expired (an expired token is dropped)."""
        if self._token and self.is_expired():
            logger.info("Auth token expired; clearing it")
            self.clear()
        return self._token

    @property
    def is_authenticated(self) -> bool:
        return self.get() is not None
