"""Unit tests for the Stripe billing gateway and its helpers."""

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import stripe

from singr_backoffice.server.services import billing
from singr_backoffice.server.services.billing import (
    BillingGatewayError,
    StripeGateway,
    from_timestamp,
    get_billing_gateway,
    plan_label,
)

pytestmark = pytest.mark.asyncio


class TestPlanLabel:
    @pytest.mark.parametrize(
        ("nickname", "recurring", "expected"),
        [
            ("Founders Rate", {"interval": "month"}, "Founders Rate"),
            (None, {"interval": "month", "interval_count": 1}, "Monthly Plan"),
            (None, {"interval": "month"}, "Monthly Plan"),
            (None, {"interval": "month", "interval_count": 6}, "Semi-Annual Plan"),
            (None, {"interval": "year", "interval_count": 1}, "Annual Plan"),
            (None, {"interval": "month", "interval_count": 3}, "Singr Pro (3 months)"),
            (None, {"interval": "week", "interval_count": 1}, "Singr Pro (1 week)"),
            (None, None, None),
            (None, {}, None),
        ],
    )
    async def test_plan_label(self, nickname, recurring, expected):
        assert plan_label(nickname, recurring) == expected


class TestFromTimestamp:
    async def test_epoch_seconds(self):
        assert from_timestamp(1_700_000_000) == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)

    @pytest.mark.parametrize("value", [None, 0, "", "not-a-number"])
    async def test_absent_or_invalid(self, value):
        assert from_timestamp(value) is None


class TestStripeGateway:
    async def test_unconfigured_gateway_raises(self):
        gateway = StripeGateway(api_key=None)

        with pytest.raises(BillingGatewayError, match="Stripe is not configured"):
            await gateway.create_customer("host@example.com", "Host", "user-1")

    async def test_create_customer_passes_metadata_and_options(self):
        gateway = StripeGateway(api_key="sk_test", api_version="2024-06-20")
        create = MagicMock(return_value=SimpleNamespace(id="cus_new"))

        with patch.object(stripe.Customer, "create", create):
            customer_id = await gateway.create_customer("host@example.com", "Host", "user-1")

        assert customer_id == "cus_new"
        create.assert_called_once_with(
            email="host@example.com",
            name="Host",
            metadata={"userId": "user-1"},
            api_key="sk_test",
            stripe_version="2024-06-20",
        )

    async def test_stripe_errors_are_wrapped(self):
        gateway = StripeGateway(api_key="sk_test")
        create = MagicMock(side_effect=stripe.StripeError("Your card was declined."))

        with patch.object(stripe.Customer, "create", create):
            with pytest.raises(BillingGatewayError, match="Your card was declined."):
                await gateway.create_customer("host@example.com", None, "user-1")

    async def test_checkout_session_params(self):
        gateway = StripeGateway(api_key="sk_test")
        session = SimpleNamespace(
            id="cs_1",
            url="https://checkout.stripe.test/cs_1",
            payment_status="unpaid",
            mode="subscription",
            amount_total=2900,
            currency="usd",
            expires_at=1_700_000_000,
        )
        create = MagicMock(return_value=session)

        with patch.object(stripe.checkout.Session, "create", create):
            result = await gateway.create_checkout_session(
                customer_id="cus_1",
                price_id="price_annual",
                user_id="user-1",
                success_url="https://app/billing?session_id={CHECKOUT_SESSION_ID}",
                cancel_url="https://app/billing",
                coupon_id="LAUNCH",
                upgrade_from="sub_old",
            )

        params = create.call_args.kwargs
        assert params["line_items"] == [{"price": "price_annual", "quantity": 1}]
        assert params["discounts"] == [{"coupon": "LAUNCH"}]
        assert params["subscription_data"] == {"metadata": {"upgrade_from": "sub_old"}}
        assert params["metadata"] == {"userId": "user-1"}
        assert result["id"] == "cs_1"
        assert result["expires_at"] == datetime(2023, 11, 14, 22, 13, 20, tzinfo=timezone.utc)

    async def test_checkout_session_without_extras(self):
        gateway = StripeGateway(api_key="sk_test")
        create = MagicMock(return_value=SimpleNamespace(id="cs_2"))

        with patch.object(stripe.checkout.Session, "create", create):
            result = await gateway.create_checkout_session(
                customer_id="cus_1",
                price_id="price_monthly",
                user_id="user-1",
                success_url="https://app/billing",
                cancel_url="https://app/billing",
            )

        params = create.call_args.kwargs
        assert "discounts" not in params
        assert "subscription_data" not in params
        assert result["payment_status"] == "unpaid"
        assert result["currency"] == "usd"

    async def test_has_active_subscription_checks_trialing(self):
        gateway = StripeGateway(api_key="sk_test")
        listing = MagicMock(side_effect=[SimpleNamespace(data=[]), SimpleNamespace(data=[object()])])

        with patch.object(stripe.Subscription, "list", listing):
            assert await gateway.has_active_subscription("cus_1") is True

        statuses = [call.kwargs["status"] for call in listing.call_args_list]
        assert statuses == ["active", "trialing"]

    async def test_has_no_active_subscription(self):
        gateway = StripeGateway(api_key="sk_test")
        listing = MagicMock(return_value=SimpleNamespace(data=[]))

        with patch.object(stripe.Subscription, "list", listing):
            assert await gateway.has_active_subscription("cus_1") is False

    async def test_modify_subscription(self):
        gateway = StripeGateway(api_key="sk_test")
        modify = MagicMock(
            return_value=SimpleNamespace(id="sub_1", status="active", cancel_at_period_end=True, cancel_at=None)
        )

        with patch.object(stripe.Subscription, "modify", modify):
            result = await gateway.modify_subscription("sub_1", cancel_at_period_end=True)

        assert modify.call_args.args == ("sub_1",)
        assert result == {"id": "sub_1", "status": "active", "cancel_at_period_end": True, "cancel_at": None}

    async def test_portal_session_url(self):
        gateway = StripeGateway(api_key="sk_test")
        create = MagicMock(return_value=SimpleNamespace(url="https://billing.stripe.test/p"))

        with patch.object(stripe.billing_portal.Session, "create", create):
            assert await gateway.create_portal_session("cus_1", "https://app/billing") == "https://billing.stripe.test/p"


async def test_get_billing_gateway_reads_settings(monkeypatch):
    monkeypatch.setattr(billing, "_billing_gateway", None)
    monkeypatch.setattr(billing.settings, "stripe_secret_key", "sk_from_settings")
    monkeypatch.setattr(billing.settings, "stripe_webhook_secret", "whsec_from_settings")

    gateway = get_billing_gateway()

    assert gateway.api_key == "sk_from_settings"
    assert gateway.webhook_secret == "whsec_from_settings"
    assert get_billing_gateway() is gateway
