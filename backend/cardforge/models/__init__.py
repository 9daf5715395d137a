"""
Database models package.
"""
from cardforge.models.base import Base
from cardforge.models.user import User
from cardforge.models.credit_transaction import CreditTransaction
from cardforge.models.image_metadata import ImageMetadata
from cardforge.models.order import Order, OrderStatus, PrintOptions, PrintSize

__all__ = [
    "Base",
    "User",
    "CreditTransaction",
    "ImageMetadata",
    "Order",
    "OrderStatus",
    "PrintOptions",
    "PrintSize",
]
