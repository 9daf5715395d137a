"""
API router aggregator.
Includes all route modules.
"""
from fastapi import APIRouter
from cardforge.api import health, images, me, orders, pricing, webhooks

api_router = APIRouter()

# Include route modules
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(images.router, prefix="/images", tags=["images"])
api_router.include_router(me.router, prefix="/me", tags=["me"])
api_router.include_router(pricing.router, prefix="/pricing", tags=["pricing"])
api_router.include_router(orders.router, prefix="/orders", tags=["orders"])
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["webhooks"])
