"""
Pydantic schemas for API request/response validation.
"""
from cardforge.schemas.images import (
    GenerateImageRequest,
    GenerateImageResponse,
    ImageResponse,
)
from cardforge.schemas.me import (
    MeResponse,
    MembershipRefreshResponse,
    TransactionResponse,
)
from cardforge.schemas.orders import (
    CheckoutRequest,
    CheckoutResponse,
    OrderItem,
    OrderResponse,
    UpdateStatusRequest,
)
from cardforge.schemas.pricing import QuoteResponse, TierResponse

__all__ = [
    "GenerateImageRequest",
    "GenerateImageResponse",
    "ImageResponse",
    "MeResponse",
    "MembershipRefreshResponse",
    "TransactionResponse",
    "CheckoutRequest",
    "CheckoutResponse",
    "OrderItem",
    "OrderResponse",
    "UpdateStatusRequest",
    "QuoteResponse",
    "TierResponse",
]
