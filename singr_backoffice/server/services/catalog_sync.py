"""
Stripe catalog sync.

Copies every active Stripe product and price into ``stripe_products`` and
``stripe_prices`` so the plans page has something to list before the first
catalog webhook arrives, or after webhooks were missed. Rows go through the
same upsert handlers the webhook endpoint uses.

Run it once per environment after the products are set up in Stripe::

    singr-sync-stripe
    python -m singr_backoffice.server.services.catalog_sync --log-level DEBUG
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from singr_backoffice.core.database import async_session_maker, engine
from singr_backoffice.core.logging_config import get_logger, setup_logging

from .billing import BillingGatewayError, StripeGateway, get_billing_gateway
from .stripe_webhooks import WebhookProcessor

logger = get_logger(__name__)


@dataclass
class CatalogSyncResult:
    products: int
    prices: int


async def sync_catalog(session: AsyncSession, gateway: StripeGateway) -> CatalogSyncResult:
    """
    Upsert the active Stripe catalog and commit.

    Both listings are fetched before anything is written, so a Stripe failure
    leaves the tables untouched. Products are written first so every price
    finds its product row.

    Raises:
        BillingGatewayError: Stripe is not configured or a listing failed
    """
    products = await gateway.list_active_products()
    prices = await gateway.list_active_prices()

    processor = WebhookProcessor(session)
    for product in products:
        await processor.handle_product(product)
    for price in prices:
        await processor.handle_price(price)
    await session.commit()

    logger.info(f"Stripe catalog synced: {len(products)} products, {len(prices)} prices")
    return CatalogSyncResult(products=len(products), prices=len(prices))


async def run(
    session_factory: Callable[[], AsyncSession] = async_session_maker,
    gateway: Optional[StripeGateway] = None,
) -> int:
    """Sync the catalog and return a process exit code."""
    gateway = gateway or get_billing_gateway()
    async with session_factory() as session:
        try:
            await sync_catalog(session, gateway)
        except BillingGatewayError as e:
            await session.rollback()
            logger.error(f"Stripe catalog sync failed: {e}")
            return 1
    return 0


async def _main() -> int:
    try:
        return await run()
    finally:
        await engine.dispose()


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Copy the active Stripe catalog into the back office database.")
    parser.add_argument("--log-level", default=None, help="Console log level (default: SINGR_LOG_LEVEL)")
    args = parser.parse_args(argv)

    setup_logging(log_level=args.log_level, enable_file=False)
    return asyncio.run(_main())


if __name__ == "__main__":
    sys.exit(main())
