"""
Webhook endpoints for external services.
Handles Stripe payment webhooks for print orders.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from cardforge.database import get_db
from cardforge.services.order_service import OrderService
from cardforge.services.stripe_service import StripeService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature")
):
    """
    Stripe webhook endpoint for processing payment events.

    Handles:
    - checkout.session.completed: marks the session's pending orders as paid

    Security:
    - Validates Stripe signature
    - Idempotent: redelivered events leave already-paid orders untouched
    """
    body = await request.body()
    event = StripeService.construct_event(body, stripe_signature)

    if event["type"] == "checkout.session.completed":
        session = event["data"]["object"]
        checkout_session_id = session.get("id")
        if not checkout_session_id:
            logger.warning("checkout.session.completed without session id")
            return {"received": True, "status": "ignored"}

        updated = await OrderService.mark_paid_by_session(db, checkout_session_id)
        if not updated:
            logger.info(
                f"No pending orders for checkout session {checkout_session_id}",
                extra={"event": "webhook_noop", "payment_session_id": checkout_session_id},
            )
        return {"received": True, "status": "processed", "orders_updated": updated}

    logger.debug(f"Unhandled Stripe event type: {event['type']}")
    return {"received": True, "status": "ignored"}
