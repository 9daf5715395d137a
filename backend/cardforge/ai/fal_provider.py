"""
fal.ai provider implementation.
Calls the synchronous fal.run endpoint of a FLUX model over httpx.
"""
import logging
import time
from typing import Any, Dict, Optional

import httpx

from cardforge.ai.base import GeneratedImage, ImageProvider
from cardforge.config import settings
from cardforge.errors import UpstreamError
from cardforge.utils.logging import log_provider_failure, log_provider_request
from cardforge.utils.metrics import (
    image_provider_latency_seconds,
    provider_failures_total,
    provider_requests_total,
)

logger = logging.getLogger(__name__)


class FalImageProvider(ImageProvider):
    """
    fal.ai image generation provider.

    POSTs to {fal_base_url}/{fal_model} with `Authorization: Key <FAL_KEY>`.
    The API key is kept server-side and never exposed to clients.
    """

    name = "fal"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ):
        self.http_client = http_client
        self.api_key = api_key if api_key is not None else settings.fal_key
        self.model = model or settings.fal_model
        self.base_url = (base_url or settings.fal_base_url).rstrip("/")
        self.timeout_seconds = timeout_seconds or settings.outbound_timeout_seconds

    def is_configured(self) -> bool:
        """Check if the fal API key is configured."""
        return bool(self.api_key)

    def _build_payload(self, prompt: str, width: int, height: int) -> Dict[str, Any]:
        return {
            "prompt": prompt,
            "image_size": {"width": width, "height": height},
            "num_images": 1,
            "enable_safety_checker": True,
            "safety_tolerance": "2",
        }

    async def generate(self, prompt: str, width: int, height: int) -> GeneratedImage:
        """
        Generate one image with fal.ai.

        Raises:
            UpstreamError: kind "rate_limited" (HTTP 429), "timeout", or
                "unavailable" (network errors, 5xx, malformed response)
            ValueError: If API key not configured
        """
        if not self.is_configured():
            raise ValueError("fal API key not configured. Set FAL_KEY environment variable.")

        url = f"{self.base_url}/{self.model}"
        start_time = time.time()
        provider_requests_total.labels(provider=self.name, operation="generate").inc()

        try:
            response = await self.http_client.post(
                url,
                json=self._build_payload(prompt, width, height),
                headers={"Authorization": f"Key {self.api_key}"},
                timeout=self.timeout_seconds,
            )
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            self._record_failure("timeout", start_time)
            raise UpstreamError("The image provider timed out. Please try again later.", kind="timeout", provider=self.name) from e
        except httpx.HTTPStatusError as e:
            self._record_failure(f"HTTP {e.response.status_code}", start_time)
            if e.response.status_code == 429:
                raise UpstreamError("Rate limit exceeded. Please try again later.", kind="rate_limited", provider=self.name) from e
            raise UpstreamError(
                f"Image provider returned HTTP {e.response.status_code}",
                kind="unavailable",
                provider=self.name,
            ) from e
        except httpx.TransportError as e:
            self._record_failure(str(e), start_time)
            raise UpstreamError(
                "A network error occurred while contacting the image provider.",
                kind="unavailable",
                provider=self.name,
            ) from e
        except ValueError as e:
            # Non-JSON body
            self._record_failure("invalid JSON response", start_time)
            raise UpstreamError("Image provider returned an invalid response", provider=self.name) from e

        duration = time.time() - start_time
        image_provider_latency_seconds.labels(provider=self.name).observe(duration)
        log_provider_request(logger, provider=self.name, operation="generate", duration_ms=duration * 1000)

        return self._parse_result(data, width, height, response.headers.get("x-fal-request-id"))

    def _parse_result(self, data: Dict[str, Any], width: int, height: int, request_id: Optional[str]) -> GeneratedImage:
        images = data.get("images") or []
        if not images or not images[0].get("url"):
            raise UpstreamError("Image provider returned no images", provider=self.name)

        image = images[0]
        return GeneratedImage(
            image_url=image["url"],
            width=int(image.get("width") or width),
            height=int(image.get("height") or height),
            content_type=image.get("content_type") or "image/jpeg",
            seed=data.get("seed"),
            has_nsfw_concepts=[bool(flag) for flag in data.get("has_nsfw_concepts") or []],
            timings=data.get("timings") or {},
            request_id=request_id,
            raw=data,
        )

    def _record_failure(self, error: str, start_time: float) -> None:
        provider_failures_total.labels(provider=self.name, operation="generate").inc()
        log_provider_failure(
            logger,
            provider=self.name,
            operation="generate",
            error=error,
            duration_ms=(time.time() - start_time) * 1000,
        )
