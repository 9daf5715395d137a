"""
Base class for image generation providers.
All providers must implement this interface so the generation flow can use
any of them without knowing which one is configured.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class GeneratedImage:
    """Normalized result of one provider generation call."""
    image_url: str
    width: int
    height: int
    content_type: str = "image/jpeg"
    seed: Optional[int] = None
    has_nsfw_concepts: List[bool] = field(default_factory=list)
    timings: Dict[str, Any] = field(default_factory=dict)
    request_id: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)  # Full provider response


class ImageProvider(ABC):
    """
    Abstract base class for image generation providers.

    All providers must implement:
    - generate(): Create one image from a prompt at a given size
    - is_configured(): Whether credentials are present
    """

    name = "base"

    @abstractmethod
    async def generate(self, prompt: str, width: int, height: int) -> GeneratedImage:
        """
        Generate a single image.

        Not idempotent (each call is billed by the provider), so callers must
        not retry it automatically.

        Raises:
            UpstreamError: provider unreachable, timed out, rate limited or failed
        """
        pass

    @abstractmethod
    def is_configured(self) -> bool:
        """
        Check if provider is properly configured (API key present, etc.).

        Returns:
            True if provider can be used, False otherwise
        """
        pass
