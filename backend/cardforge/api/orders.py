"""
Print order endpoints: checkout, listing and status updates.
All endpoints require Firebase JWT authentication.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from cardforge.auth.dependencies import get_current_user
from cardforge.database import get_db
from cardforge.errors import ValidationError
from cardforge.models.order import OrderStatus
from cardforge.models.user import User
from cardforge.schemas.orders import CheckoutRequest, CheckoutResponse, OrderResponse, UpdateStatusRequest
from cardforge.services.order_service import OrderService
from cardforge.services.stripe_service import StripeService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
    body: CheckoutRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Create a Stripe Checkout Session for print orders.

    The server recomputes the total from the pricing tiers; a different
    `totalAmount` is rejected with 400 "Total amount mismatch".
    """
    return await StripeService.create_print_checkout(
        db,
        current_user,
        order_items=body.order_items,
        total_amount=body.total_amount,
        success_url=body.success_url,
        cancel_url=body.cancel_url,
    )


@router.get("", response_model=List[OrderResponse])
async def list_orders(
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Get the authenticated user's orders, newest first."""
    return await OrderService.list_orders(db, current_user.id, limit=limit)


@router.post("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str,
    body: UpdateStatusRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Move an order to a new status.
    Shipped and cancelled orders cannot change (400 invalid_transition).
    Only the payment webhook marks an order paid.
    """
    if body.new_status == OrderStatus.PAID:
        raise ValidationError("Orders are marked paid by the payment provider, not by clients")

    return await OrderService.update_status(
        db, order_id, body.new_status, user_id=current_user.id
    )
