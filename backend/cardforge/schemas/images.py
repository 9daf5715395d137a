"""
Pydantic schemas for image generation endpoints.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from cardforge.schemas.common import CamelModel


class GenerateImageRequest(CamelModel):
    """Schema for an image generation request."""
    prompt: str = Field(..., description="Text prompt (at most 1000 characters)")
    image_size: str = Field(
        "landscape_4_3",
        description="'WIDTHxHEIGHT' (e.g. '1024x576') or a preset such as 'square_hd'",
    )


class GenerateImageResponse(CamelModel):
    """Schema for a successful generation."""
    image_url: str
    storage_url: str
    credits_used: int
    remaining_credits: int
    image_id: str
    seed: Optional[int] = None


class ImageResponse(CamelModel):
    """Schema for a stored image."""
    id: str
    prompt: str
    image_url: str
    storage_url: str
    width: int
    height: int
    seed: Optional[int] = None
    content_type: str
    nsfw_flags: List[bool] = []
    credits_used: int
    created_at: datetime
