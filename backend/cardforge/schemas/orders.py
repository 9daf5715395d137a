"""
Pydantic schemas for print order and checkout endpoints.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from cardforge.models.order import OrderStatus, PrintSize
from cardforge.schemas.common import CamelModel


class PrintOptionsSchema(CamelModel):
    size: PrintSize = PrintSize.STANDARD
    quantity: int


class UploadedImage(CamelModel):
    name: str
    src: str = Field(..., description="Publicly reachable image URL")


class OrderItem(CamelModel):
    """One checkout line: an image printed at a size and quantity."""
    print_options: PrintOptionsSchema
    uploaded_image: UploadedImage
    image_id: Optional[str] = Field(None, description="Id of a generated image, if any")


class CheckoutRequest(CamelModel):
    """Schema for creating a checkout session."""
    order_items: List[OrderItem]
    total_amount: int = Field(..., description="Client-computed total in cents")
    success_url: Optional[str] = None
    cancel_url: Optional[str] = None


class CheckoutResponse(CamelModel):
    id: str
    url: Optional[str] = None


class UpdateStatusRequest(CamelModel):
    new_status: OrderStatus


class OrderResponse(CamelModel):
    """Schema for order response."""
    id: str
    status: OrderStatus
    image_name: str
    image_url: str
    image_metadata_id: Optional[str] = None
    payment_session_id: Optional[str] = None
    unit_price_cents: int
    total_cents: int
    print_options: Optional[PrintOptionsSchema] = None
    created_at: datetime
    updated_at: datetime
