"""
Business logic services.
"""
from cardforge.services.credit_service import CreditService
from cardforge.services.generation_service import GenerationService
from cardforge.services.membership_service import MembershipService
from cardforge.services.order_service import OrderService
from cardforge.services.stripe_service import StripeService

__all__ = [
    "CreditService",
    "GenerationService",
    "MembershipService",
    "OrderService",
    "StripeService",
]
