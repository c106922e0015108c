"""Unit tests for CSRF token issuance and verification."""

from unittest.mock import MagicMock

import pytest

from zephra.core.csrf import CSRF_TOKEN_TTL_SECONDS, CsrfProtection, require_csrf
from zephra.core.exceptions import ForbiddenError
from zephra.core.kv_store import InMemoryKeyValueStore


@pytest.fixture
def clock():
    return {"now": 0.0}


@pytest.fixture
def csrf(clock):
    store = InMemoryKeyValueStore(clock=lambda: clock["now"])
    return CsrfProtection(store=store, secret="unit-secret")


class TestCsrfProtection:
    def test_issued_token_verifies(self, csrf):
        token = csrf.create_token("session-1")
        assert csrf.verify_token("session-1", token) is True

    def test_token_is_bound_to_session(self, csrf):
        token = csrf.create_token("session-1")
        csrf.create_token("session-2")
        assert csrf.verify_token("session-2", token) is False

    def test_tampered_token_rejected(self, csrf):
        token = csrf.create_token("session-1")
        nonce, _, signature = token.partition(".")
        assert csrf.verify_token("session-1", f"{nonce}x.{signature}") is False
        assert csrf.verify_token("session-1", "") is False
        assert csrf.verify_token("session-1", None) is False

    def test_non_ascii_token_rejected(self, csrf):
        csrf.create_token("session-1")
        assert csrf.verify_token("session-1", "nönce.sïgnature") is False

    def test_token_expires(self, csrf, clock):
        token = csrf.create_token("session-1")
        clock["now"] += CSRF_TOKEN_TTL_SECONDS
        assert csrf.verify_token("session-1", token) is False

    def test_new_token_replaces_previous(self, csrf):
        first = csrf.create_token("session-1")
        second = csrf.create_token("session-1")
        assert csrf.verify_token("session-1", first) is False
        assert csrf.verify_token("session-1", second) is True

    def test_revoke(self, csrf):
        token = csrf.create_token("session-1")
        csrf.revoke("session-1")
        assert csrf.verify_token("session-1", token) is False


def _request(method: str, headers: dict[str, str]) -> MagicMock:
    request = MagicMock()
    request.method = method
    request.headers = headers
    return request


class TestRequireCsrf:
    async def test_safe_methods_skip_check(self):
        await require_csrf(_request("GET", {}))

    async def test_missing_token_forbidden(self):
        with pytest.raises(ForbiddenError, match="CSRF token required"):
            await require_csrf(_request("PATCH", {"x-session-id": "s"}))

    async def test_invalid_token_forbidden(self):
        with pytest.raises(ForbiddenError, match="Invalid CSRF token"):
            await require_csrf(_request("POST", {"x-session-id": "s", "x-csrf-token": "a.b"}))

    async def test_valid_token_passes(self):
        from zephra.core.csrf import csrf_protection

        token = csrf_protection.create_token("s")
        await require_csrf(_request("POST", {"x-session-id": "s", "x-csrf-token": token}))
