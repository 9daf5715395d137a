"""
Pricing endpoints.
Public: the tier table and per-quantity quotes used by the order page.
"""
from typing import List

from fastapi import APIRouter, Query

from cardforge.schemas.pricing import QuoteResponse, TierResponse
from cardforge.services.pricing_service import PRINT_PRICING_TIERS, unit_price_for_quantity

router = APIRouter()


@router.get("/tiers", response_model=List[TierResponse])
async def get_tiers():
    """Print pricing tiers, in the order they are matched."""
    return [
        TierResponse(
            min_quantity=tier.min_quantity,
            max_quantity=tier.max_quantity,
            price_per_unit_cents=tier.price_per_unit_cents,
        )
        for tier in PRINT_PRICING_TIERS
    ]


@router.get("/quote", response_model=QuoteResponse)
async def get_quote(quantity: int = Query(...)):
    """Unit price and total for a quantity."""
    unit_price = unit_price_for_quantity(quantity)
    return QuoteResponse(
        quantity=quantity,
        unit_price_cents=unit_price,
        total_cents=unit_price * quantity,
    )
