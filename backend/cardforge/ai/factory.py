"""
Image provider factory.
Returns the configured provider bound to the application's shared HTTP client.
"""
import logging

import httpx
from fastapi import Request

from cardforge.ai.base import ImageProvider
from cardforge.ai.fal_provider import FalImageProvider
from cardforge.errors import UpstreamError

logger = logging.getLogger(__name__)


def build_image_provider(http_client: httpx.AsyncClient) -> ImageProvider:
    """
    Build the image provider.

    Raises:
        UpstreamError: If the provider is not configured
    """
    provider = FalImageProvider(http_client)
    if not provider.is_configured():
        logger.warning("fal provider selected but API key not configured")
        raise UpstreamError("Image generation is not configured", provider=provider.name)
    return provider


def get_image_provider(request: Request) -> ImageProvider:
    """FastAPI dependency: image provider using the app's HTTP client."""
    return build_image_provider(request.app.state.http_client)
