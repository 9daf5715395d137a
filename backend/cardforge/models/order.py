"""
Order and PrintOptions models for the print/checkout flow.

One Order per checkout line item; all orders from one checkout share the
payment processor's session id. Status is a small state machine where
`shipped` and `cancelled` are terminal (enforced in OrderService).
"""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, Enum as SQLEnum, Index
from sqlalchemy.orm import relationship
from datetime import datetime
import enum

from cardforge.models.base import Base, generate_uuid


class OrderStatus(str, enum.Enum):
    """Order status enum."""
    PENDING = "pending"
    PAID = "paid"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    CANCELLED = "cancelled"


class PrintSize(str, enum.Enum):
    """Printable card sizes."""
    STANDARD = "standard"  # 2.5" x 3.5"
    LARGE = "large"        # 3.5" x 5"


class Order(Base):
    """A print order for one image."""

    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    image_metadata_id = Column(String(36), ForeignKey("image_metadata.id"), nullable=True)

    image_name = Column(String(255), nullable=False)
    image_url = Column(String(1000), nullable=False)

    status = Column(
        SQLEnum(OrderStatus, values_callable=lambda x: [e.value for e in x], name="orderstatus"),
        nullable=False,
        default=OrderStatus.PENDING,
    )
    payment_session_id = Column(String(255), nullable=True)

    unit_price_cents = Column(Integer, nullable=False)
    total_cents = Column(Integer, nullable=False)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    image_metadata = relationship("ImageMetadata", lazy="selectin")
    print_options = relationship(
        "PrintOptions",
        back_populates="order",
        uselist=False,
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_order_payment_session", "payment_session_id"),
        Index("idx_order_user_created", "user_id", "created_at"),
    )

    def __repr__(self):
        return f"<Order(id={self.id}, status={self.status}, session={self.payment_session_id})>"


class PrintOptions(Base):
    """Size and quantity of a print order."""

    __tablename__ = "print_options"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    order_id = Column(String(36), ForeignKey("orders.id"), nullable=False, unique=True)
    size = Column(
        SQLEnum(PrintSize, values_callable=lambda x: [e.value for e in x], name="printsize"),
        nullable=False,
        default=PrintSize.STANDARD,
    )
    quantity = Column(Integer, nullable=False)

    order = relationship("Order", back_populates="print_options")

    def __repr__(self):
        return f"<PrintOptions(order_id={self.order_id}, size={self.size}, quantity={self.quantity})>"
