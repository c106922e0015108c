"""Unit tests for the billing reconciliation handlers.

The database is a mocked AsyncSession; assertions inspect the compiled
UPDATE statements the handlers issue.
"""

import uuid
from datetime import UTC, datetime
from unittest.mock import patch

import pytest

from zephra.core.exceptions import DatabaseError, MissingUserReferenceError, UserNotFoundError
from zephra.services.webhooks import handlers
from zephra.services.webhooks.events import parse_event

from tests.helpers.mock_factories import (
    compiled,
    executed_statements,
    mock_update_result,
    webhook_event,
)

USER_ID = uuid.UUID("6f1c1d5e-8a7b-4c2d-9e0f-1a2b3c4d5e6f")


def _checkout_event(**overrides) -> object:
    obj = {
        "id": "cs_test_1",
        "mode": "subscription",
        "customer": "cus_123",
        "subscription": "sub_123",
        "metadata": {"planId": "pro", "userId": str(USER_ID)},
    }
    obj.update(overrides)
    return parse_event(webhook_event("checkout.session.completed", obj))


@pytest.fixture
def mock_stripe():
    with patch("zephra.services.webhooks.handlers.stripe_service") as service:
        service.retrieve_customer.return_value = {
            "id": "cus_123",
            "email": "a@b.com",
            "metadata": {"userId": str(USER_ID), "planId": "pro"},
        }
        yield service


class TestCheckoutCompleted:
    async def test_activates_user(self, mock_db, mock_stripe):
        await handlers.handle_checkout_completed(mock_db, _checkout_event())

        (statement,) = executed_statements(mock_db)
        sql, params = compiled(statement)
        assert sql.startswith("UPDATE users SET")
        assert params["stripe_customer_id"] == "cus_123"
        assert params["stripe_subscription_id"] == "sub_123"
        assert params["subscription_status"] == "active"
        assert params["payment_confirmed"] is True
        assert params["id_1"] == USER_ID
        mock_stripe.retrieve_customer.assert_called_once_with("cus_123")

    async def test_replay_is_idempotent(self, mock_db, mock_stripe):
        event = _checkout_event()

        await handlers.handle_checkout_completed(mock_db, event)
        await handlers.handle_checkout_completed(mock_db, event)

        first, second = (compiled(s) for s in executed_statements(mock_db))
        assert first == second
        assert first[1]["subscription_status"] == "active"

    async def test_falls_back_to_session_metadata(self, mock_db, mock_stripe):
        mock_stripe.retrieve_customer.return_value = {"id": "cus_123", "metadata": {}}

        await handlers.handle_checkout_completed(mock_db, _checkout_event())

        _, params = compiled(executed_statements(mock_db)[0])
        assert params["id_1"] == USER_ID

    async def test_missing_user_reference(self, mock_db, mock_stripe):
        mock_stripe.retrieve_customer.return_value = {"id": "cus_123", "metadata": {"userId": ""}}

        with pytest.raises(MissingUserReferenceError) as exc_info:
            await handlers.handle_checkout_completed(mock_db, _checkout_event(metadata={}))

        assert exc_info.value.status_code == 422
        mock_db.execute.assert_not_called()

    async def test_malformed_user_reference(self, mock_db, mock_stripe):
        mock_stripe.retrieve_customer.return_value = {"metadata": {"userId": "not-a-uuid"}}

        with pytest.raises(MissingUserReferenceError):
            await handlers.handle_checkout_completed(mock_db, _checkout_event(metadata={}))

    async def test_ignores_payment_mode_sessions(self, mock_db, mock_stripe):
        await handlers.handle_checkout_completed(
            mock_db, _checkout_event(mode="payment", subscription=None)
        )

        mock_stripe.retrieve_customer.assert_not_called()
        mock_db.execute.assert_not_called()

    async def test_unknown_user_is_not_success(self, mock_db, mock_stripe):
        mock_db.execute.return_value = mock_update_result(0)

        with pytest.raises(UserNotFoundError):
            await handlers.handle_checkout_completed(mock_db, _checkout_event())


class TestSubscriptionChanged:
    def _event(self, **overrides):
        obj = {
            "id": "sub_123",
            "customer": "cus_123",
            "status": "trialing",
            "trial_end": 1_900_000_000,
            "items": {"data": [{"price": {"id": "price_elite_yearly"}}]},
        }
        obj.update(overrides)
        return parse_event(webhook_event("customer.subscription.updated", obj))

    async def test_sets_tier_status_and_trial_end(self, mock_db):
        await handlers.handle_subscription_changed(mock_db, self._event())

        _, params = compiled(executed_statements(mock_db)[0])
        assert params["subscription_tier"] == "enterprise"
        assert params["subscription_status"] == "trialing"
        assert params["trial_ends_at"] == datetime.fromtimestamp(1_900_000_000, tz=UTC)
        assert params["stripe_subscription_id_1"] == "sub_123"

    async def test_unknown_price_falls_back_to_starter(self, mock_db):
        event = self._event(items={"data": [{"price": {"id": "price_legacy"}}]}, status="unpaid")

        await handlers.handle_subscription_changed(mock_db, event)

        _, params = compiled(executed_statements(mock_db)[0])
        assert params["subscription_tier"] == "starter"
        assert params["subscription_status"] == "canceled"

    async def test_no_matching_row_raises(self, mock_db):
        mock_db.execute.return_value = mock_update_result(0)

        with pytest.raises(UserNotFoundError, match="stripe_subscription_id=sub_123"):
            await handlers.handle_subscription_changed(mock_db, self._event())


class TestSubscriptionDeleted:
    async def test_downgrades_customer_to_starter(self, mock_db):
        event = parse_event(
            webhook_event("customer.subscription.deleted", {"id": "sub_9", "customer": "cus_123"})
        )

        await handlers.handle_subscription_deleted(mock_db, event)

        sql, params = compiled(executed_statements(mock_db)[0])
        assert params["subscription_tier"] == "starter"
        assert params["stripe_subscription_id"] is None
        assert params["subscription_status"] == "canceled"
        assert params["stripe_customer_id_1"] == "cus_123"
        assert "WHERE users.stripe_customer_id" in sql


class TestInvoiceEvents:
    def _invoice(self, event_type: str):
        return parse_event(
            webhook_event(
                event_type, {"id": "in_1", "customer": "cus_123", "subscription": "sub_123"}
            )
        )

    async def test_payment_succeeded_activates(self, mock_db):
        await handlers.handle_invoice_paid(mock_db, self._invoice("invoice.payment_succeeded"))

        sql, params = compiled(executed_statements(mock_db)[0])
        assert params["subscription_status"] == "active"
        assert params["stripe_customer_id_1"] == "cus_123"
        assert params["stripe_subscription_id_1"] == "sub_123"
        assert "users.stripe_customer_id" in sql and "users.stripe_subscription_id" in sql

    async def test_payment_failed_marks_past_due(self, mock_db):
        await handlers.handle_invoice_payment_failed(
            mock_db, self._invoice("invoice.payment_failed")
        )

        _, params = compiled(executed_statements(mock_db)[0])
        assert params["subscription_status"] == "past_due"

    async def test_payment_failed_with_no_matching_row_raises(self, mock_db):
        mock_db.execute.return_value = mock_update_result(0)

        with pytest.raises(UserNotFoundError) as exc_info:
            await handlers.handle_invoice_payment_failed(
                mock_db, self._invoice("invoice.payment_failed")
            )

        assert exc_info.value.criteria == {
            "stripe_customer_id": "cus_123",
            "stripe_subscription_id": "sub_123",
        }
        assert exc_info.value.status_code == 500

    async def test_invoice_without_subscription_is_missing_reference(self, mock_db):
        event = parse_event(
            webhook_event("invoice.payment_failed", {"id": "in_2", "customer": "cus_123"})
        )

        with pytest.raises(MissingUserReferenceError):
            await handlers.handle_invoice_payment_failed(mock_db, event)

    async def test_database_errors_propagate(self, mock_db):
        from sqlalchemy.exc import OperationalError

        mock_db.execute.side_effect = OperationalError("UPDATE", {}, Exception("down"))

        with pytest.raises(DatabaseError):
            await handlers.handle_invoice_paid(mock_db, self._invoice("invoice.payment_succeeded"))
