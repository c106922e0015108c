"""CSRF tokens bound to a client session id.

Tokens are random nonces signed with the session secret and stored in the
key-value store for 30 minutes.
"""

import hashlib
import hmac
import logging
import secrets

from fastapi import Request

from zephra.config import settings
from zephra.core.exceptions import ForbiddenError
from zephra.core.kv_store import KeyValueStore, get_kv_store

logger = logging.getLogger(__name__)

CSRF_TOKEN_TTL_SECONDS = 30 * 60
SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


class CsrfProtection:
    def __init__(self, store: KeyValueStore | None = None, secret: str | None = None) -> None:
        self._store = store
        self._secret = secret

    @property
    def store(self) -> KeyValueStore:
        return self._store if self._store is not None else get_kv_store()

    @property
    def secret(self) -> bytes:
        return (self._secret or settings.session_secret).encode()

    def _sign(self, session_id: str, nonce: str) -> str:
        message = f"{session_id}:{nonce}".encode()
        return hmac.new(self.secret, message, hashlib.sha256).hexdigest()

    @staticmethod
    def _key(session_id: str) -> str:
        return f"csrf:{session_id}"

    def create_token(self, session_id: str) -> str:
        """Generate and store a CSRF token for a session, replacing any previous one."""
        nonce = secrets.token_urlsafe(32)
        token = f"{nonce}.{self._sign(session_id, nonce)}"
        self.store.set(self._key(session_id), token, ttl_seconds=CSRF_TOKEN_TTL_SECONDS)
        return token

    def verify_token(self, session_id: str, token: str | None) -> bool:
        """Validate a token against the stored one; expired tokens are gone from the store."""
        if not token:
            return False

        stored = self.store.get(self._key(session_id))
        if stored is None:
            return False

        nonce, _, signature = token.partition(".")
        if not hmac.compare_digest(signature.encode(), self._sign(session_id, nonce).encode()):
            return False
        return hmac.compare_digest(token.encode(), str(stored).encode())

    def revoke(self, session_id: str) -> None:
        self.store.delete(self._key(session_id))


csrf_protection = CsrfProtection()


def session_id_of(request: Request) -> str:
    return request.headers.get("x-session-id") or "anonymous"


async def require_csrf(request: Request) -> None:
    """FastAPI dependency enforcing x-csrf-token on state-changing requests."""
    if request.method in SAFE_METHODS:
        return

    session_id = session_id_of(request)
    token = request.headers.get("x-csrf-token")

    if not token:
        raise ForbiddenError("CSRF token required")
    if not csrf_protection.verify_token(session_id, token):
        logger.warning(f"Rejected CSRF token for session {session_id[:8]}")
        raise ForbiddenError("Invalid CSRF token")
