from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlmodel import select

from singr_backoffice.core.database.entities.billing import (
    StripeCheckoutSession,
    StripePrice,
    StripeProduct,
    Subscription,
)
from singr_backoffice.server.core.config import settings

pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture
async def annual_price(session):
    session.add(StripeProduct(id="prod_singr", name="Singr Pro"))
    price = StripePrice(
        id="price_annual",
        product_id="prod_singr",
        currency="usd",
        unit_amount=29900,
        recurring={"interval": "year", "interval_count": 1},
    )
    session.add(price)
    await session.commit()
    return price


@pytest_asyncio.fixture
async def subscription(session, customer, annual_price):
    now = datetime.now(timezone.utc)
    row = Subscription(
        id="sub_123",
        user_id=customer.id,
        customer=f"cus_{customer.id[:8]}",
        status="active",
        price_id=annual_price.id,
        current_period_start=now,
        current_period_end=now + timedelta(days=365),
    )
    session.add(row)
    await session.commit()
    return row


class TestGetSubscription:
    async def test_none(self, client: AsyncClient, auth_headers):
        response = await client.get("/api/v1/billing/subscription", headers=auth_headers)
        assert response.status_code == 200
        assert response.json() is None

    async def test_latest_with_plan_label(self, client: AsyncClient, auth_headers, subscription):
        body = (await client.get("/api/v1/billing/subscription", headers=auth_headers)).json()
        assert body["id"] == "sub_123"
        assert body["plan_label"] == "Annual Plan"
        assert body["cancel_at_period_end"] is False


class TestCheckout:
    async def test_first_purchase(self, client: AsyncClient, session, customer, auth_headers, billing_gateway):
        response = await client.post(
            "/api/v1/billing/create-checkout-session", json={"price_id": "price_annual"}, headers=auth_headers
        )

        assert response.json() == {"session_id": "cs_test_1", "url": "https://checkout.stripe.test/cs_test_1"}
        (call,) = billing_gateway.called("create_checkout_session")
        billing_url = f"{settings.app_base_url.rstrip('/')}/dashboard/billing"
        assert call["customer_id"] == f"cus_{customer.id[:8]}"
        assert call["success_url"] == f"{billing_url}?session_id={{CHECKOUT_SESSION_ID}}"
        assert call["cancel_url"] == billing_url
        assert call["upgrade_from"] is None

        stored = (await session.execute(select(StripeCheckoutSession))).scalars().one()
        assert stored.customer_id == customer.id
        assert stored.session_metadata == {"userId": customer.id}

    async def test_upgrade_passes_current_subscription(
        self, client: AsyncClient, auth_headers, billing_gateway, subscription
    ):
        await client.post(
            "/api/v1/billing/create-checkout-session",
            json={"price_id": "price_monthly", "coupon_id": "LAUNCH"},
            headers=auth_headers,
        )

        (call,) = billing_gateway.called("create_checkout_session")
        assert call["upgrade_from"] == "sub_123"
        assert call["coupon_id"] == "LAUNCH"

    async def test_invalid_redirect(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/v1/billing/create-checkout-session",
            json={"price_id": "price_annual", "success_url": "not a url"},
            headers=auth_headers,
        )
        assert response.status_code == 400
        assert response.json() == {"detail": "Invalid URL"}

    async def test_stripe_failure(self, client: AsyncClient, auth_headers, billing_gateway):
        billing_gateway.fail = True
        response = await client.post(
            "/api/v1/billing/create-checkout-session", json={"price_id": "price_annual"}, headers=auth_headers
        )
        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error"}


class TestCancelAndReactivate:
    async def test_cancel_at_period_end(self, client: AsyncClient, auth_headers, billing_gateway, subscription):
        response = await client.post(
            "/api/v1/billing/cancel-subscription", json={"subscription_id": "sub_123"}, headers=auth_headers
        )

        assert response.json()["cancel_at_period_end"] is True
        assert billing_gateway.called("modify_subscription") == [
            {"subscription_id": "sub_123", "cancel_at_period_end": True}
        ]
        assert subscription.cancel_at_period_end is True

    async def test_cancel_immediately_prorates(self, client: AsyncClient, auth_headers, billing_gateway, subscription):
        billing_gateway.subscription_status = "canceled"

        await client.post(
            "/api/v1/billing/cancel-subscription",
            json={"subscription_id": "sub_123", "cancel_at_period_end": False},
            headers=auth_headers,
        )

        (call,) = billing_gateway.called("modify_subscription")
        assert call["proration_behavior"] == "create_prorations"
        assert subscription.status == "canceled"

    async def test_foreign_subscription(self, client: AsyncClient, make_customer, headers_for, subscription):
        other = await make_customer(email="other@example.com")
        response = await client.post(
            "/api/v1/billing/cancel-subscription", json={"subscription_id": "sub_123"}, headers=headers_for(other)
        )
        assert response.status_code == 404
        assert response.json() == {"detail": "Subscription not found"}

    async def test_reactivate(self, client: AsyncClient, session, auth_headers, billing_gateway, subscription):
        subscription.cancel_at_period_end = True
        subscription.cancel_at = subscription.current_period_end
        await session.commit()

        response = await client.post(
            "/api/v1/billing/reactivate-subscription", json={"subscription_id": "sub_123"}, headers=auth_headers
        )

        assert response.json() == {"success": True, "cancel_at_period_end": False}
        assert subscription.cancel_at_period_end is False
        assert subscription.cancel_at is None


class TestPortal:
    async def test_portal_returns_to_billing_page(self, client: AsyncClient, customer, auth_headers, billing_gateway):
        response = await client.post("/api/v1/billing/customer-portal", headers=auth_headers)

        assert response.json() == {"url": "https://billing.stripe.test/portal"}
        assert billing_gateway.called("create_portal_session") == [
            {
                "customer_id": f"cus_{customer.id[:8]}",
                "return_url": f"{settings.app_base_url.rstrip('/')}/dashboard/billing",
            }
        ]

    async def test_portal_failure(self, client: AsyncClient, auth_headers, billing_gateway):
        billing_gateway.fail = True
        response = await client.post("/api/v1/billing/customer-portal", headers=auth_headers)
        assert response.status_code == 500
