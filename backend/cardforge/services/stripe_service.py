"""
Stripe service for payment processing.
Handles print-order checkout sessions and webhook verification.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import stripe
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cardforge.config import settings
from cardforge.errors import NotFoundError, UpstreamError, ValidationError
from cardforge.models.image_metadata import ImageMetadata
from cardforge.models.order import PrintSize
from cardforge.models.user import User
from cardforge.services.order_service import OrderService
from cardforge.services.pricing_service import unit_price_for_quantity
from cardforge.utils.logging import log_provider_failure
from cardforge.utils.metrics import provider_failures_total, provider_requests_total

logger = logging.getLogger(__name__)


@dataclass
class CheckoutLine:
    """A validated checkout item with its server-side price."""
    size: str
    quantity: int
    image_name: str
    image_url: str
    image_metadata_id: Optional[str]
    unit_price_cents: int

    @property
    def total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def to_order_item(self) -> Dict[str, Any]:
        return {
            "size": self.size,
            "quantity": self.quantity,
            "image_name": self.image_name,
            "image_url": self.image_url,
            "image_metadata_id": self.image_metadata_id,
        }

    def to_line_item(self, currency: str) -> Dict[str, Any]:
        return {
            "price_data": {
                "currency": currency,
                "product_data": {
                    "name": f"Print of {self.image_name}",
                    "images": [self.image_url],
                },
                "unit_amount": self.unit_price_cents,
            },
            "quantity": self.quantity,
        }


def _as_dict(item: Any) -> Dict[str, Any]:
    if hasattr(item, "model_dump"):
        return item.model_dump(by_alias=True)
    if isinstance(item, dict):
        return item
    raise ValidationError("Invalid order item structure")


def build_checkout_lines(order_items: Sequence[Any]) -> List[CheckoutLine]:
    """
    Validate checkout items and price each one with the tier table.

    Each item is {printOptions: {size, quantity}, uploadedImage: {name, src},
    imageId?}; pydantic models with those aliases are accepted too.

    Raises:
        ValidationError: empty list or malformed item
        NoMatchingTier: quantity outside the tier table (reject policy)
    """
    if not order_items:
        raise ValidationError("Invalid order items")

    lines = []
    for raw in order_items:
        item = _as_dict(raw)
        print_options = item.get("printOptions")
        uploaded_image = item.get("uploadedImage")
        if not isinstance(print_options, dict) or not isinstance(uploaded_image, dict):
            raise ValidationError("Invalid order item structure")

        quantity = print_options.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError("Quantity must be at least 1")

        size = print_options.get("size") or PrintSize.STANDARD.value
        try:
            size = PrintSize(size).value
        except ValueError as e:
            raise ValidationError(f"Unknown print size '{size}'") from e

        name = uploaded_image.get("name")
        src = uploaded_image.get("src")
        if not name or not src:
            raise ValidationError("Uploaded image requires name and src")

        lines.append(CheckoutLine(
            size=size,
            quantity=quantity,
            image_name=name,
            image_url=src,
            image_metadata_id=item.get("imageId"),
            unit_price_cents=unit_price_for_quantity(quantity),
        ))
    return lines


class StripeService:
    """Service for Stripe payment operations."""

    def __init__(self):
        """Initialize Stripe with API key."""
        if settings.stripe_secret_key:
            stripe.api_key = settings.stripe_secret_key
            logger.info("Stripe initialized with secret key")
        else:
            logger.warning("Stripe secret key not configured")

    @staticmethod
    def _ensure_api_key() -> None:
        if not settings.stripe_secret_key:
            raise UpstreamError("Payment service is not configured", provider="stripe")
        if stripe.api_key != settings.stripe_secret_key:
            stripe.api_key = settings.stripe_secret_key

    @staticmethod
    async def _check_image_ownership(db: AsyncSession, user_id: str, lines: Sequence[CheckoutLine]) -> None:
        """
        Raises:
            NotFoundError: an imageId is unknown or belongs to another user
        """
        image_ids = {line.image_metadata_id for line in lines if line.image_metadata_id}
        if not image_ids:
            return

        result = await db.execute(
            select(ImageMetadata.id)
            .where(ImageMetadata.id.in_(image_ids))
            .where(ImageMetadata.user_id == user_id)
        )
        missing = image_ids - set(result.scalars().all())
        if missing:
            raise NotFoundError(f"Image {sorted(missing)[0]} not found")

    @staticmethod
    async def create_print_checkout(
        db: AsyncSession,
        user: User,
        order_items: Sequence[Any],
        total_amount: int,
        success_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a Stripe Checkout Session for print orders.

        The total is recomputed from the tier table and must equal the
        client's `total_amount`. The session is created once (no retry)
        and one pending Order per item is stored under its id.

        Args:
            db: Database session
            user: Purchasing user
            order_items: Checkout items
            total_amount: Client-computed total in cents
            success_url: Redirect after payment (defaults under public_base_url)
            cancel_url: Redirect on cancel (defaults under public_base_url)

        Returns:
            Dict with id and url of the checkout session

        Raises:
            ValidationError: malformed items or total mismatch
            UpstreamError: Stripe not configured or rejected the request
        """
        lines = build_checkout_lines(order_items)
        calculated_total = sum(line.total_cents for line in lines)
        if calculated_total != total_amount:
            logger.info(
                f"Checkout total mismatch for user {user.id}: client {total_amount}, server {calculated_total}",
                extra={
                    "event": "checkout_total_mismatch",
                    "user_id": user.id,
                    "client_total": total_amount,
                    "calculated_total": calculated_total,
                },
            )
            raise ValidationError("Total amount mismatch")

        await StripeService._check_image_ownership(db, user.id, lines)

        StripeService._ensure_api_key()

        base_url = settings.public_base_url.rstrip("/")
        success_url = success_url or f"{base_url}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}"
        cancel_url = cancel_url or f"{base_url}/checkout/cancel"

        provider_requests_total.labels(provider="stripe", operation="checkout").inc()
        try:
            checkout_session = stripe.checkout.Session.create(
                payment_method_types=["card"],
                line_items=[line.to_line_item(settings.checkout_currency) for line in lines],
                mode="payment",
                success_url=success_url,
                cancel_url=cancel_url,
                metadata={
                    "user_id": str(user.id),
                    "order_count": str(len(lines)),
                },
                customer=user.stripe_customer_id or None,
                customer_email=None if user.stripe_customer_id else (user.email or None),
            )
        except stripe.StripeError as e:
            provider_failures_total.labels(provider="stripe", operation="checkout").inc()
            log_provider_failure(logger, provider="stripe", operation="checkout", error=str(e), user_id=user.id)
            raise UpstreamError("Payment service error", provider="stripe") from e

        await OrderService.create_orders(
            db,
            user_id=user.id,
            items=[line.to_order_item() for line in lines],
            payment_session_id=checkout_session.id,
        )

        logger.info(
            f"Created checkout session {checkout_session.id} for user {user.id} "
            f"({len(lines)} item(s), {calculated_total} cents)",
            extra={
                "event": "checkout_created",
                "user_id": user.id,
                "payment_session_id": checkout_session.id,
                "total_cents": calculated_total,
            },
        )
        return {"id": checkout_session.id, "url": checkout_session.url}

    @staticmethod
    def construct_event(payload: bytes, signature: Optional[str]) -> Any:
        """
        Verify a webhook payload and return the Stripe event.

        Raises:
            ValidationError: missing or invalid signature, malformed payload
            UpstreamError: webhook secret not configured
        """
        if not settings.stripe_webhook_secret:
            raise UpstreamError("Stripe webhook secret not configured", provider="stripe")
        if not signature:
            raise ValidationError("Missing Stripe signature")
        try:
            return stripe.Webhook.construct_event(payload, signature, settings.stripe_webhook_secret)
        except ValueError as e:
            logger.error(f"Invalid payload: {e}")
            raise ValidationError("Invalid payload") from e
        except stripe.SignatureVerificationError as e:
            logger.error(f"Invalid signature: {e}")
            raise ValidationError("Invalid signature") from e

    @staticmethod
    async def ensure_stripe_customer(
        db: AsyncSession,
        user: User,
    ) -> Optional[str]:
        """
        Ensure a Stripe customer exists for the user's email and remember its id.

        Returns:
            Stripe customer ID, or None if Stripe is not configured or the
            user has no email
        """
        if user.stripe_customer_id:
            return user.stripe_customer_id
        if not user.email or not settings.stripe_secret_key:
            return None

        StripeService._ensure_api_key()
        try:
            customers = stripe.Customer.list(email=user.email, limit=1)
            if customers.data:
                customer_id = customers.data[0].id
                logger.info(f"Found existing Stripe customer {customer_id} for user {user.id}")
            else:
                customer = stripe.Customer.create(email=user.email, metadata={"user_id": str(user.id)})
                customer_id = customer.id
                logger.info(f"Created new Stripe customer {customer_id} for user {user.id}")
        except stripe.StripeError as e:
            # Checkout still works with customer_email
            log_provider_failure(logger, provider="stripe", operation="customer", error=str(e), user_id=user.id)
            return None

        user.stripe_customer_id = customer_id
        await db.commit()
        return customer_id


# Singleton instance
stripe_service = StripeService()
