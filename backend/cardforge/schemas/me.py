"""
Pydantic schemas for the authenticated user's profile and ledger.
"""
from datetime import datetime
from typing import Optional

from cardforge.schemas.common import CamelModel


class MeResponse(CamelModel):
    id: str
    email: Optional[str] = None
    credits: int
    membership_tier: Optional[str] = None


class TransactionResponse(CamelModel):
    id: str
    delta: int
    balance_after: int
    reason: str
    created_at: datetime


class MembershipRefreshResponse(CamelModel):
    tier: str
    granted: int
    credits: int
