"""
Image generation provider abstraction.
"""
from cardforge.ai.base import GeneratedImage, ImageProvider
from cardforge.ai.factory import build_image_provider, get_image_provider

__all__ = ["GeneratedImage", "ImageProvider", "build_image_provider", "get_image_provider"]
