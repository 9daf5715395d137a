"""
ImageMetadata model for AI-generated images.

Created exactly once per successful generation and never updated.
The image bytes live in object storage; `storage_url` is the durable copy,
`image_url` the provider's (short-lived) original.
"""
import json
from datetime import datetime
from sqlalchemy import Column, String, Integer, BigInteger, DateTime, ForeignKey, Text, Index

from cardforge.models.base import Base, generate_uuid


class ImageMetadata(Base):
    """
    Metadata of a generated image.

    Attributes:
        prompt: Prompt the image was generated from
        image_url: URL returned by the image provider
        storage_url: Public URL of our stored copy
        seed: Provider seed (for reproducing the image)
        has_nsfw_concepts: JSON list of booleans, one per returned image
        full_result: Raw provider response, serialized as JSON
        credits_used: Credits charged for the generation
    """

    __tablename__ = "image_metadata"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)

    prompt = Column(Text, nullable=False)
    image_url = Column(String(1000), nullable=False)
    storage_url = Column(String(1000), nullable=False)
    seed = Column(BigInteger, nullable=True)
    width = Column(Integer, nullable=False)
    height = Column(Integer, nullable=False)
    content_type = Column(String(100), nullable=False, default="image/jpeg")
    has_nsfw_concepts = Column(Text, nullable=False, default="[]")
    full_result = Column(Text, nullable=True)
    credits_used = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_image_metadata_user_created", "user_id", "created_at"),
    )

    @property
    def nsfw_flags(self) -> list:
        """Decoded `has_nsfw_concepts`."""
        return json.loads(self.has_nsfw_concepts or "[]")

    def __repr__(self):
        return f"<ImageMetadata(id={self.id}, user_id={self.user_id}, {self.width}x{self.height})>"
