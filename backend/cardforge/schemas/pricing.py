"""
Pydantic schemas for pricing endpoints.
"""
from typing import Optional

from cardforge.schemas.common import CamelModel


class TierResponse(CamelModel):
    min_quantity: int
    max_quantity: Optional[int] = None
    price_per_unit_cents: int


class QuoteResponse(CamelModel):
    quantity: int
    unit_price_cents: int
    total_cents: int
