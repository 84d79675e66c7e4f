"""
Price Endpoints.

Public read access to the Stripe prices mirrored by the webhook endpoint,
used by the plans page.
"""

from typing import List

from fastapi import APIRouter, HTTPException

from singr_backoffice.core.database.repositories import PriceRepository
from singr_backoffice.core.models.io.billing import PriceRead
from singr_backoffice.server.services.billing import price_read
from singr_backoffice.server.services.deps import SessionDep

router = APIRouter()


@router.get(
    "",
    response_model=List[PriceRead],
    summary="List Prices",
    description="Active prices with their products, cheapest first.",
    response_description="List of prices.",
)
async def list_prices(session: SessionDep) -> List[PriceRead]:
    rows = await PriceRepository(session).list_active_with_products()
    return [price_read(price, product) for price, product in rows]


@router.get(
    "/{price_id}",
    response_model=PriceRead,
    summary="Get Price",
    description="Retrieve one price with its product.",
    response_description="The price.",
    responses={404: {"description": "Price not found"}},
)
async def get_price(price_id: str, session: SessionDep) -> PriceRead:
    row = await PriceRepository(session).get_with_product(price_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Price not found")
    return price_read(*row)
