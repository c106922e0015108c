"""Unit tests for auth dependencies: JWT validation, user auto-creation, admin gate."""

import uuid
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi.security import HTTPAuthorizationCredentials
from jose import JWTError

from zephra.api.deps.auth import decode_token, get_current_user, get_signing_key, require_admin
from zephra.core.exceptions import AuthenticationError, ForbiddenError

from tests.helpers.mock_factories import make_user, mock_scalar_result


def _credentials(token: str = "token") -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


# ---------------------------------------------------------------------------
# get_signing_key
# ---------------------------------------------------------------------------


class TestGetSigningKey:
    def test_returns_key_when_kid_matches(self):
        jwks = {"keys": [{"kid": "key-1"}, {"kid": "key-2", "kty": "EC"}]}

        with (
            patch("zephra.api.deps.auth.jwt") as mock_jwt,
            patch("zephra.api.deps.auth.ECKey") as mock_eckey,
        ):
            mock_jwt.get_unverified_header.return_value = {"kid": "key-2"}
            key = get_signing_key(jwks, "dummy")

        assert key is mock_eckey.return_value
        mock_eckey.assert_called_once_with({"kid": "key-2", "kty": "EC"}, algorithm="ES256")

    def test_raises_when_no_matching_kid(self):
        with patch("zephra.api.deps.auth.jwt") as mock_jwt:
            mock_jwt.get_unverified_header.return_value = {"kid": "missing"}

            with pytest.raises(ValueError, match="Unable to find matching key"):
                get_signing_key({"keys": [{"kid": "key-1"}]}, "dummy")


# ---------------------------------------------------------------------------
# get_current_user
# ---------------------------------------------------------------------------


class TestGetCurrentUser:
    async def test_missing_credentials(self, mock_db):
        with pytest.raises(AuthenticationError):
            await get_current_user(credentials=None, db=mock_db)

    async def test_returns_existing_user(self, mock_db):
        user = make_user()
        mock_db.execute.return_value = mock_scalar_result(user)

        with patch(
            "zephra.api.deps.auth.decode_token",
            new=AsyncMock(return_value={"sub": str(user.id)}),
        ):
            result = await get_current_user(credentials=_credentials(), db=mock_db)

        assert result is user
        mock_db.add.assert_not_called()

    async def test_creates_user_on_first_call(self, mock_db):
        user_id = uuid.uuid4()
        mock_db.execute.return_value = mock_scalar_result(None)
        payload = {
            "sub": str(user_id),
            "email": " New@Example.com ",
            "user_metadata": {"name": "New User"},
        }

        with patch("zephra.api.deps.auth.decode_token", new=AsyncMock(return_value=payload)):
            result = await get_current_user(credentials=_credentials(), db=mock_db)

        assert result.id == user_id
        assert result.email == "new@example.com"
        assert result.full_name == "New User"
        mock_db.add.assert_called_once()
        mock_db.flush.assert_awaited_once()

    async def test_retries_with_refreshed_jwks(self, mock_db):
        user = make_user()
        mock_db.execute.return_value = mock_scalar_result(user)
        decode = AsyncMock(side_effect=[JWTError("bad kid"), {"sub": str(user.id)}])

        with patch("zephra.api.deps.auth.decode_token", new=decode):
            result = await get_current_user(credentials=_credentials(), db=mock_db)

        assert result is user
        assert decode.await_args_list[1].kwargs == {"force_refresh": True}

    async def test_invalid_token_after_refresh(self, mock_db):
        decode = AsyncMock(side_effect=JWTError("expired"))

        with patch("zephra.api.deps.auth.decode_token", new=decode):
            with pytest.raises(AuthenticationError, match="Could not validate credentials"):
                await get_current_user(credentials=_credentials(), db=mock_db)

        mock_db.execute.assert_not_called()


# ---------------------------------------------------------------------------
# require_admin
# ---------------------------------------------------------------------------


class TestRequireAdmin:
    async def test_admin_passes(self):
        admin = make_user(is_admin=True)

        assert await require_admin(MagicMock(), admin) is admin

    async def test_non_admin_is_audited_and_rejected(self):
        request = MagicMock()
        request.url.path = "/api/admin/cancel-subscription"

        with patch("zephra.api.deps.auth.log_security_event", new=AsyncMock()) as audit:
            with pytest.raises(ForbiddenError, match="Admin access required"):
                await require_admin(request, make_user())

        assert audit.await_args.args[0].value == "unauthorized_access"


# ---------------------------------------------------------------------------
# decode_token
# ---------------------------------------------------------------------------


class TestDecodeToken:
    @pytest.fixture
    def mock_jwt(self):
        with (
            patch("zephra.api.deps.auth.get_jwks", new=AsyncMock(return_value={"keys": []})),
            patch("zephra.api.deps.auth.get_signing_key", return_value=MagicMock()),
            patch("zephra.api.deps.auth.jwt") as mock_jwt,
        ):
            yield mock_jwt

    async def test_returns_payload_with_uuid_subject(self, mock_jwt):
        subject = str(uuid.uuid4())
        mock_jwt.decode.return_value = {"sub": subject, "email": "a@b.com"}

        payload = await decode_token("token")

        assert payload["sub"] == subject

    async def test_non_uuid_subject_is_unauthenticated(self, mock_jwt, mock_db):
        mock_jwt.decode.return_value = {"sub": "service-account"}

        with pytest.raises(AuthenticationError, match="Could not validate credentials"):
            await get_current_user(credentials=_credentials(), db=mock_db)

        mock_db.execute.assert_not_called()
