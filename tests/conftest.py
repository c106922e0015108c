"""Root conftest - test infrastructure for all backend tests.

Provides:
- Deterministic settings (Stripe test keys, price ids, webhook secret)
- Fresh in-memory key-value store per test
- Autouse mock for the Supabase audit-log client
- Mocked AsyncSession and an API client with dependency overrides
"""

from __future__ import annotations

import os

# Settings are read once at import time; pin them before zephra is imported.
os.environ.update(
    {
        "ENVIRONMENT": "production",
        "STRIPE_SECRET_KEY": "sk_test_zephra",
        "STRIPE_WEBHOOK_SECRET": "whsec_test_zephra",
        "STRIPE_PRICE_BASIC_MONTHLY": "price_basic_monthly",
        "STRIPE_PRICE_BASIC_YEARLY": "price_basic_yearly",
        "STRIPE_PRICE_PRO_MONTHLY": "price_pro_monthly",
        "STRIPE_PRICE_PRO_YEARLY": "price_pro_yearly",
        "STRIPE_PRICE_ELITE_MONTHLY": "price_elite_monthly",
        "STRIPE_PRICE_ELITE_YEARLY": "price_elite_yearly",
        "SESSION_SECRET": "test-session-secret",
    }
)

from unittest.mock import AsyncMock, MagicMock, patch  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from zephra.core.kv_store import InMemoryKeyValueStore, set_kv_store  # noqa: E402

from tests.helpers.mock_factories import make_user, mock_update_result  # noqa: E402

# ─────────────────────────────────────────────────────────────────────────────
# Isolation
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def kv_store():
    """Fresh key-value store so rate-limit counters and CSRF tokens never leak."""
    store = InMemoryKeyValueStore()
    set_kv_store(store)
    return store


@pytest.fixture(autouse=True)
def mock_external_services():
    """SAFETY: never write audit events to a real Supabase project."""
    with patch("zephra.core.audit_log.get_supabase_admin_client") as mock_client:
        yield {"supabase": mock_client}


# ─────────────────────────────────────────────────────────────────────────────
# Database + API Client
# ─────────────────────────────────────────────────────────────────────────────


@pytest.fixture
def mock_db() -> AsyncMock:
    """AsyncSession stand-in whose UPDATEs report one affected row."""
    db = AsyncMock()
    db.execute.return_value = mock_update_result(1)
    db.add = MagicMock()
    return db


@pytest.fixture
def test_user():
    return make_user()


@pytest.fixture
async def api_client(mock_db: AsyncMock, test_user):
    """HTTP client that bypasses JWT auth and uses the mocked DB session.

    Overrides: get_current_user, get_db
    """
    from zephra.api.deps.auth import get_current_user
    from zephra.core.database import get_db
    from zephra.main import app

    app.dependency_overrides[get_current_user] = lambda: test_user

    async def override_db():
        yield mock_db

    app.dependency_overrides[get_db] = override_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
