"""
Image generation endpoints.
All endpoints require Firebase JWT authentication.
"""
import logging
from typing import List, Optional

import httpx
from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy.ext.asyncio import AsyncSession

from cardforge.ai.base import ImageProvider
from cardforge.ai.factory import get_image_provider
from cardforge.auth.dependencies import get_current_user
from cardforge.database import get_db
from cardforge.models.user import User
from cardforge.schemas.images import GenerateImageRequest, GenerateImageResponse, ImageResponse
from cardforge.services.generation_service import GenerationService
from cardforge.services.membership_service import MembershipClient, get_membership_client
from cardforge.storage.object_storage import ObjectStorage, get_object_storage
from cardforge.utils.http import get_http_client

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/generate", response_model=GenerateImageResponse)
async def generate_image(
    body: GenerateImageRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    provider: ImageProvider = Depends(get_image_provider),
    storage: ObjectStorage = Depends(get_object_storage),
    http_client: httpx.AsyncClient = Depends(get_http_client),
    membership_client: MembershipClient = Depends(get_membership_client),
    membership_token: Optional[str] = Header(None, alias="X-Membership-Token"),
):
    """
    Generate an image from a prompt, charged in credits by size.

    Returns 403 with `required`/`available` when the balance is too low;
    credits are refunded if generation or storage fails.
    """
    return await GenerationService.generate(
        db,
        current_user,
        prompt=body.prompt,
        image_size=body.image_size,
        provider=provider,
        storage=storage,
        http_client=http_client,
        membership_client=membership_client,
        membership_token=membership_token,
    )


@router.get("", response_model=List[ImageResponse])
async def list_images(
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Get the authenticated user's generated images, newest first."""
    return await GenerationService.list_images(db, current_user.id, limit=limit)
