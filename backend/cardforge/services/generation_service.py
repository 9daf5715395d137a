"""
Image generation service.

Meters AI image generation with credits: the cost is reserved atomically
before the provider is called and given back if anything after the
reservation fails.
"""
import json
import logging
import time
import uuid
from typing import Any, Dict, List, Optional

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cardforge.ai.base import ImageProvider
from cardforge.errors import AppError, InternalError, ValidationError
from cardforge.models.image_metadata import ImageMetadata
from cardforge.models.user import User
from cardforge.services.credit_service import CreditService
from cardforge.services.membership_service import MembershipClient, MembershipService
from cardforge.services.pricing_service import credit_cost, parse_image_size
from cardforge.storage.object_storage import ObjectStorage, download_image, extension_for
from cardforge.utils.logging import log_image_generated, log_image_generation_failed
from cardforge.utils.metrics import (
    image_generation_failures_total,
    images_generated_total,
)

logger = logging.getLogger(__name__)

MAX_PROMPT_LENGTH = 1000


def validate_prompt(prompt: Any) -> str:
    """
    Raises:
        ValidationError: prompt missing, not a string, blank or too long
    """
    if not isinstance(prompt, str) or not prompt.strip():
        raise ValidationError("Prompt is required and must be a string.")
    prompt = prompt.strip()
    if len(prompt) > MAX_PROMPT_LENGTH:
        raise ValidationError(f"Prompt must be at most {MAX_PROMPT_LENGTH} characters")
    return prompt


class GenerationService:
    """Service for credit-metered image generation."""

    @staticmethod
    async def generate(
        db: AsyncSession,
        user: User,
        prompt: str,
        image_size: str,
        provider: ImageProvider,
        storage: ObjectStorage,
        http_client: httpx.AsyncClient,
        membership_client: Optional[MembershipClient] = None,
        membership_token: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Generate one image for `user` and store it.

        Flow:
        1. Validate prompt and size
        2. Apply this period's membership grant (when a token is given)
        3. Reserve ceil(megapixels x rate) credits
        4. Call the provider (no retry)
        5. Download and upload to object storage
        6. Persist ImageMetadata
        Steps 4-6 refund the reservation on failure.

        Returns:
            Dict with imageUrl, storageUrl, creditsUsed, remainingCredits,
            imageId and seed

        Raises:
            ValidationError: bad prompt or size
            InsufficientCredits: balance does not cover the cost
            UpstreamError: provider, download or storage failure (refunded)
            InternalError: unexpected failure after reservation (refunded)
        """
        user_id = user.id
        prompt = validate_prompt(prompt)
        size = parse_image_size(image_size)

        if membership_token and membership_client is not None:
            await MembershipService.refresh_and_grant(db, membership_client, user_id, membership_token)

        cost = credit_cost(size.width, size.height)
        remaining = await CreditService.consume(db, user_id, cost, reason="image_generation")

        start_time = time.time()
        try:
            result = await provider.generate(prompt, size.width, size.height)
            data = await download_image(http_client, result.image_url)
            content_type = result.content_type or "image/jpeg"
            object_key = f"generated/{user_id}/{uuid.uuid4()}.{extension_for(content_type)}"
            storage_url = await storage.upload_bytes(object_key, data, content_type)

            image = ImageMetadata(
                user_id=user_id,
                prompt=prompt,
                image_url=result.image_url,
                storage_url=storage_url,
                seed=result.seed,
                width=result.width or size.width,
                height=result.height or size.height,
                content_type=content_type,
                has_nsfw_concepts=json.dumps(result.has_nsfw_concepts),
                full_result=json.dumps(result.raw),
                credits_used=cost,
            )
            db.add(image)
            await db.commit()
            await db.refresh(image)
        except AppError as e:
            await GenerationService._refund_after_failure(db, user_id, cost, e, start_time, reason=e.error)
            raise
        except Exception as e:
            await GenerationService._refund_after_failure(db, user_id, cost, e, start_time, reason="internal")
            raise InternalError("Failed to generate image") from e

        duration_ms = (time.time() - start_time) * 1000
        images_generated_total.inc()
        log_image_generated(
            logger,
            image_id=image.id,
            user_id=user_id,
            credits_used=cost,
            duration_ms=duration_ms,
            image_size=str(size),
        )

        return {
            "imageUrl": result.image_url,
            "storageUrl": storage_url,
            "creditsUsed": cost,
            "remainingCredits": remaining,
            "imageId": image.id,
            "seed": result.seed,
        }

    @staticmethod
    async def _refund_after_failure(
        db: AsyncSession,
        user_id: str,
        cost: int,
        error: Exception,
        start_time: float,
        reason: str,
    ) -> None:
        await db.rollback()
        try:
            await CreditService.refund(db, user_id, cost)
        except Exception:
            # Keep the original failure; the caller re-raises it
            logger.error(
                f"Refund of {cost} credits failed for user {user_id}",
                extra={"event": "refund_failed", "user_id": user_id, "amount": cost},
                exc_info=True,
            )
            cost = 0
        image_generation_failures_total.labels(reason=reason).inc()
        log_image_generation_failed(
            logger,
            user_id=user_id,
            error=str(error),
            duration_ms=(time.time() - start_time) * 1000,
            refunded=cost,
            include_traceback=not isinstance(error, AppError),
        )

    @staticmethod
    async def list_images(db: AsyncSession, user_id: str, limit: int = 20) -> List[ImageMetadata]:
        """User's generated images, newest first."""
        result = await db.execute(
            select(ImageMetadata)
            .where(ImageMetadata.user_id == user_id)
            .order_by(ImageMetadata.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
