"""
Shared outbound HTTP client.

One httpx.AsyncClient is opened in the application lifespan and reused by
the image provider, image downloads and the membership client.
"""
import httpx
from fastapi import Request

from cardforge.config import settings


def build_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.outbound_timeout_seconds),
        follow_redirects=True,
        headers={"User-Agent": "cardforge-api"},
    )


def get_http_client(request: Request) -> httpx.AsyncClient:
    """FastAPI dependency: the app's shared HTTP client."""
    return request.app.state.http_client
