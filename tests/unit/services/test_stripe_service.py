"""Unit tests for the Stripe SDK wrapper."""

from types import SimpleNamespace
from unittest.mock import patch

import pytest
import stripe

from zephra.core.exceptions import ProviderError
from zephra.services.stripe_service import TRIAL_PERIOD_DAYS, StripeService


@pytest.fixture
def mock_stripe():
    with patch("zephra.services.stripe_service.stripe") as sdk:
        yield sdk


class TestCheckoutSession:
    def test_session_parameters(self, mock_stripe):
        mock_stripe.checkout.Session.create.return_value = SimpleNamespace(id="cs_1", url="u")
        metadata = {"planId": "pro", "userId": "u-1"}

        session = StripeService.create_checkout_session(
            customer_id="cus_1",
            price_id="price_pro_monthly",
            success_url="https://app/success",
            cancel_url="https://app/cancel",
            metadata=metadata,
        )

        assert session.id == "cs_1"
        kwargs = mock_stripe.checkout.Session.create.call_args.kwargs
        assert kwargs["mode"] == "subscription"
        assert kwargs["line_items"] == [{"price": "price_pro_monthly", "quantity": 1}]
        assert kwargs["allow_promotion_codes"] is True
        assert kwargs["billing_address_collection"] == "required"
        assert kwargs["metadata"] == metadata
        assert kwargs["subscription_data"] == {
            "trial_period_days": TRIAL_PERIOD_DAYS,
            "metadata": metadata,
        }
        assert TRIAL_PERIOD_DAYS == 7

    def test_sdk_error_becomes_provider_error(self, mock_stripe):
        mock_stripe.checkout.Session.create.side_effect = stripe.StripeError("No such price")

        with pytest.raises(ProviderError) as exc_info:
            StripeService.create_checkout_session("cus_1", "price_x", "s", "c", {})

        assert exc_info.value.operation == "checkout session creation"
        assert exc_info.value.status_code == 502
        assert isinstance(exc_info.value.__cause__, stripe.StripeError)


class TestCustomers:
    def test_find_returns_first_match(self, mock_stripe):
        mock_stripe.Customer.list.return_value = SimpleNamespace(data=[SimpleNamespace(id="cus_1")])

        assert StripeService.find_customer_by_email("a@b.com").id == "cus_1"
        mock_stripe.Customer.list.assert_called_once_with(email="a@b.com", limit=1)

    def test_find_returns_none_without_match(self, mock_stripe):
        mock_stripe.Customer.list.return_value = SimpleNamespace(data=[])

        assert StripeService.find_customer_by_email("a@b.com") is None

    def test_phone_only_sent_when_present(self, mock_stripe):
        StripeService.create_customer("a@b.com", "A", {"planId": "pro"})

        assert "phone" not in mock_stripe.Customer.create.call_args.kwargs

    def test_update_uses_modify(self, mock_stripe):
        StripeService.update_customer("cus_1", "A", {"planId": "pro"}, phone="5551234567")

        mock_stripe.Customer.modify.assert_called_once_with(
            "cus_1", name="A", metadata={"planId": "pro"}, phone="5551234567"
        )


class TestSubscriptions:
    def test_cancel_prorates(self, mock_stripe):
        StripeService.cancel_subscription("sub_1")

        mock_stripe.Subscription.cancel.assert_called_once_with("sub_1", prorate=True)

    def test_list_active(self, mock_stripe):
        mock_stripe.Subscription.list.return_value = SimpleNamespace(data=[SimpleNamespace(id="sub_1")])

        subscriptions = StripeService.list_active_subscriptions("cus_1")

        assert [s.id for s in subscriptions] == ["sub_1"]
        assert mock_stripe.Subscription.list.call_args.kwargs["status"] == "active"
