"""
User profile endpoints.
Returns information about the authenticated user.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy.ext.asyncio import AsyncSession

from cardforge.auth.dependencies import get_current_user
from cardforge.database import get_db
from cardforge.errors import AuthError
from cardforge.models.user import User
from cardforge.schemas.me import MeResponse, MembershipRefreshResponse, TransactionResponse
from cardforge.services.credit_service import CreditService
from cardforge.services.membership_service import MembershipClient, MembershipService, get_membership_client

router = APIRouter()


@router.get("", response_model=MeResponse)
async def get_me(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """
    Get the authenticated user's profile and current credit balance.
    Requires valid Firebase JWT token.
    """
    balance = await CreditService.get_balance(db, current_user.id)
    return MeResponse(
        id=current_user.id,
        email=current_user.email,
        credits=balance,
        membership_tier=current_user.membership_tier,
    )


@router.get("/transactions", response_model=List[TransactionResponse])
async def get_transactions(
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Most recent credit ledger entries of the authenticated user."""
    return await CreditService.list_transactions(db, current_user.id, limit=limit)


@router.post("/membership/refresh", response_model=MembershipRefreshResponse)
async def refresh_membership(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    membership_client: MembershipClient = Depends(get_membership_client),
    membership_token: Optional[str] = Header(None, alias="X-Membership-Token"),
):
    """
    Resolve the membership tier and apply this month's grant.
    Grants are additive and happen at most once per calendar month.
    """
    if not membership_token:
        raise AuthError("Missing membership token")

    user_id = current_user.id
    result = await MembershipService.refresh_and_grant(
        db, membership_client, user_id, membership_token
    )
    balance = await CreditService.get_balance(db, user_id)
    return MembershipRefreshResponse(
        tier=result["tier"].value,
        granted=result["granted"],
        credits=balance,
    )
