"""Unit tests for the Stripe catalog sync command."""

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import stripe
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlmodel import select

from singr_backoffice.core.database.entities.billing import StripePrice, StripeProduct
from singr_backoffice.server.services import catalog_sync
from singr_backoffice.server.services.billing import BillingGatewayError, StripeGateway
from singr_backoffice.server.services.catalog_sync import CatalogSyncResult, run, sync_catalog

PRODUCT = {"id": "prod_pro", "object": "product", "name": "Singr Pro", "description": "Unlimited venues", "active": True}
MONTHLY = {
    "id": "price_monthly",
    "object": "price",
    "product": "prod_pro",
    "currency": "usd",
    "unit_amount": 2900,
    "type": "recurring",
    "active": True,
    "recurring": {"interval": "month", "interval_count": 1},
}
ANNUAL = {
    **MONTHLY,
    "id": "price_annual",
    "unit_amount": 29900,
    "recurring": {"interval": "year", "interval_count": 1},
}


def stripe_page(items, has_more=False):
    data = [stripe.StripeObject.construct_from(item, "sk_test") for item in items]
    return SimpleNamespace(data=data, has_more=has_more)


class TestSyncCatalog:
    async def test_upserts_products_then_prices(self, session, billing_gateway):
        billing_gateway.products = [PRODUCT]
        billing_gateway.prices = [MONTHLY, ANNUAL]

        result = await sync_catalog(session, billing_gateway)

        assert result == CatalogSyncResult(products=1, prices=2)
        product = await session.get(StripeProduct, "prod_pro")
        assert product.name == "Singr Pro"
        prices = (await session.execute(select(StripePrice).order_by(StripePrice.unit_amount))).scalars().all()
        assert [(p.id, p.product_id) for p in prices] == [("price_monthly", "prod_pro"), ("price_annual", "prod_pro")]

    async def test_rerun_updates_in_place(self, session, billing_gateway):
        billing_gateway.products = [PRODUCT]
        billing_gateway.prices = [MONTHLY]
        await sync_catalog(session, billing_gateway)

        billing_gateway.products = [{**PRODUCT, "name": "Singr Pro 2026"}]
        billing_gateway.prices = [{**MONTHLY, "unit_amount": 3400}]
        await sync_catalog(session, billing_gateway)

        assert len((await session.execute(select(StripeProduct))).scalars().all()) == 1
        assert (await session.get(StripeProduct, "prod_pro")).name == "Singr Pro 2026"
        assert (await session.get(StripePrice, "price_monthly")).unit_amount == 3400

    async def test_stripe_failure_writes_nothing(self, session, billing_gateway):
        billing_gateway.fail = True

        with pytest.raises(BillingGatewayError):
            await sync_catalog(session, billing_gateway)

        assert (await session.execute(select(StripeProduct))).scalars().all() == []

    async def test_synced_prices_are_listed(self, client: AsyncClient, session, billing_gateway):
        billing_gateway.products = [PRODUCT]
        billing_gateway.prices = [ANNUAL, MONTHLY]
        await sync_catalog(session, billing_gateway)

        body = (await client.get("/api/v1/prices")).json()

        assert [price["id"] for price in body] == ["price_monthly", "price_annual"]
        assert body[0]["product"]["name"] == "Singr Pro"


class TestRun:
    async def test_exit_codes(self, test_engine, billing_gateway):
        factory = sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
        billing_gateway.products = [PRODUCT]

        assert await run(session_factory=factory, gateway=billing_gateway) == 0

        billing_gateway.fail = True
        assert await run(session_factory=factory, gateway=billing_gateway) == 1


class TestMain:
    def test_parses_log_level_and_runs(self, monkeypatch):
        calls = []

        async def fake_main():
            return 0

        monkeypatch.setattr(catalog_sync, "setup_logging", lambda **kwargs: calls.append(kwargs))
        monkeypatch.setattr(catalog_sync, "_main", fake_main)

        assert catalog_sync.main(["--log-level", "DEBUG"]) == 0
        assert calls == [{"log_level": "DEBUG", "enable_file": False}]


class TestGatewayListing:
    async def test_follows_pagination(self):
        gateway = StripeGateway(api_key="sk_test")
        listing = MagicMock(side_effect=[stripe_page([MONTHLY], has_more=True), stripe_page([ANNUAL])])

        with patch.object(stripe.Price, "list", listing):
            prices = await gateway.list_active_prices()

        assert [price["id"] for price in prices] == ["price_monthly", "price_annual"]
        assert prices[0]["recurring"] == {"interval": "month", "interval_count": 1}
        first, second = listing.call_args_list
        assert first.kwargs["active"] is True
        assert "starting_after" not in first.kwargs
        assert second.kwargs["starting_after"] == "price_monthly"

    async def test_single_page_of_products(self):
        gateway = StripeGateway(api_key="sk_test")
        listing = MagicMock(return_value=stripe_page([PRODUCT]))

        with patch.object(stripe.Product, "list", listing):
            products = await gateway.list_active_products()

        assert products == [PRODUCT]
        assert listing.call_count == 1

    async def test_unconfigured(self):
        with pytest.raises(BillingGatewayError, match="Stripe is not configured"):
            await StripeGateway(api_key=None).list_active_products()
