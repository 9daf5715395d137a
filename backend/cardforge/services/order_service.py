"""
Order service for business logic around print orders.
Handles order creation at checkout, status transitions and listing.
"""
import logging
from typing import Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cardforge.errors import InvalidTransition, NotFoundError
from cardforge.models.order import Order, OrderStatus, PrintOptions, PrintSize
from cardforge.services.pricing_service import unit_price_for_quantity
from cardforge.utils.logging import log_order_created, log_order_status_changed
from cardforge.utils.metrics import orders_created_total

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED})


def validate_transition(current: OrderStatus, new: OrderStatus) -> None:
    """
    Check an order status change.

    Shipped and cancelled orders are final; every other move is allowed.

    Raises:
        InvalidTransition: current status is terminal and new differs
    """
    current = OrderStatus(current)
    new = OrderStatus(new)
    if current in TERMINAL_STATUSES and new != current:
        raise InvalidTransition(
            f"Cannot transition order from {current.value} to {new.value}",
            current=current.value,
            requested=new.value,
        )


class OrderService:
    """Service for print order business logic."""

    @staticmethod
    async def create_orders(
        db: AsyncSession,
        user_id: str,
        items: Iterable[dict],
        payment_session_id: str,
    ) -> List[Order]:
        """
        Create one pending Order (with PrintOptions) per checkout item.

        Args:
            db: Database session
            user_id: Owner of the orders
            items: Normalized items with keys size, quantity, image_name,
                image_url and optional image_metadata_id
            payment_session_id: Checkout session shared by all orders
        """
        orders = []
        for item in items:
            quantity = item["quantity"]
            unit_price = unit_price_for_quantity(quantity)
            order = Order(
                user_id=user_id,
                image_metadata_id=item.get("image_metadata_id"),
                image_name=item["image_name"],
                image_url=item["image_url"],
                status=OrderStatus.PENDING,
                payment_session_id=payment_session_id,
                unit_price_cents=unit_price,
                total_cents=unit_price * quantity,
            )
            order.print_options = PrintOptions(
                size=PrintSize(item["size"]),
                quantity=quantity,
            )
            db.add(order)
            orders.append(order)

        await db.commit()

        for order in orders:
            orders_created_total.inc()
            log_order_created(
                logger,
                order_id=order.id,
                user_id=user_id,
                payment_session_id=payment_session_id,
                total_cents=order.total_cents,
            )
        return orders

    @staticmethod
    async def get_order(db: AsyncSession, order_id: str, user_id: Optional[str] = None) -> Order:
        """
        Get an order by id, optionally scoped to its owner.

        Raises:
            NotFoundError: unknown order, or owned by another user
        """
        query = select(Order).where(Order.id == order_id)
        if user_id is not None:
            query = query.where(Order.user_id == user_id)
        result = await db.execute(query)
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        return order

    @staticmethod
    async def update_status(
        db: AsyncSession,
        order_id: str,
        new_status: OrderStatus,
        user_id: Optional[str] = None,
    ) -> Order:
        """
        Move an order to `new_status`.

        Same-status updates are no-ops and write nothing.

        Raises:
            NotFoundError: unknown order
            InvalidTransition: order is shipped or cancelled
        """
        new_status = OrderStatus(new_status)
        order = await OrderService.get_order(db, order_id, user_id=user_id)
        old_status = OrderStatus(order.status)

        validate_transition(old_status, new_status)
        if old_status == new_status:
            return order

        order.status = new_status
        await db.commit()
        await db.refresh(order, ["status", "updated_at"])

        log_order_status_changed(
            logger,
            order_id=order.id,
            old_status=old_status.value,
            new_status=new_status.value,
        )
        return order

    @staticmethod
    async def mark_paid_by_session(db: AsyncSession, payment_session_id: str) -> int:
        """
        Mark the pending orders of a checkout session as paid.

        Only pending orders move, so a redelivered webhook changes nothing.

        Returns:
            Number of orders moved to paid
        """
        result = await db.execute(
            update(Order)
            .where(Order.payment_session_id == payment_session_id)
            .where(Order.status == OrderStatus.PENDING)
            .values(status=OrderStatus.PAID)
            .execution_options(synchronize_session="fetch")
        )
        await db.commit()

        updated = result.rowcount or 0
        if updated:
            logger.info(
                f"Marked {updated} order(s) paid for session {payment_session_id}",
                extra={
                    "event": "order_status_changed",
                    "payment_session_id": payment_session_id,
                    "old_status": OrderStatus.PENDING.value,
                    "new_status": OrderStatus.PAID.value,
                    "count": updated,
                },
            )
        return updated

    @staticmethod
    async def list_orders(db: AsyncSession, user_id: str, limit: int = 50) -> List[Order]:
        """User's orders, newest first, with image and print options loaded."""
        result = await db.execute(
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
