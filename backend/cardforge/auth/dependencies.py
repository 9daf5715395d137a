"""
FastAPI dependencies for authentication.
Provides get_current_user dependency that verifies Firebase JWT tokens.
"""
import logging

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cardforge.auth.firebase import verify_firebase_token
from cardforge.database import get_db
from cardforge.errors import AuthError
from cardforge.models.base import generate_uuid
from cardforge.models.user import User
from cardforge.services.credit_service import CreditService
from cardforge.services.stripe_service import stripe_service

logger = logging.getLogger(__name__)

# HTTPBearer scheme for extracting Authorization header
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: AsyncSession = Depends(get_db)
) -> User:
    """
    FastAPI dependency that verifies Firebase JWT token and returns User.

    Flow:
    1. Extract Bearer token from Authorization header
    2. Verify token with Firebase Admin SDK
    3. Lookup user by firebase_uid, creating it with the starting balance
    4. Link a Stripe customer when the user has an email

    Raises:
        AuthError: If token is missing, invalid, or expired
    """
    if credentials is None or not credentials.credentials:
        raise AuthError("Missing authentication token")

    try:
        decoded_token = verify_firebase_token(credentials.credentials)
    except ValueError as e:
        raise AuthError(f"Invalid token: {e}") from e

    firebase_uid = decoded_token.get("uid")
    email = decoded_token.get("email")
    if not firebase_uid:
        raise AuthError("Invalid token: missing uid")

    result = await db.execute(
        select(User).where(User.firebase_uid == firebase_uid)
    )
    user = result.scalar_one_or_none()

    if not user:
        try:
            user = await CreditService.get_or_create_user(
                db, generate_uuid(), email=email, firebase_uid=firebase_uid
            )
        except IntegrityError:
            # Same uid registered concurrently
            result = await db.execute(
                select(User).where(User.firebase_uid == firebase_uid)
            )
            user = result.scalar_one()

    if email and not user.stripe_customer_id:
        await stripe_service.ensure_stripe_customer(db, user)

    return user
