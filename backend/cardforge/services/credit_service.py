"""
Credit service (the credit ledger).
Provides atomic debit/credit operations with safety checks.

All writes to User.credits go through here. Every write is a single
conditional UPDATE so concurrent requests for the same user cannot
overspend, and every write appends a CreditTransaction row.
"""
import logging
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cardforge.config import settings
from cardforge.errors import InsufficientCredits, NotFoundError, ValidationError
from cardforge.models.credit_transaction import CreditTransaction
from cardforge.models.user import User
from cardforge.utils.logging import log_credits_consumed, log_credits_granted
from cardforge.utils.metrics import credits_consumed_total, credits_granted_total

logger = logging.getLogger(__name__)


class CreditService:
    """Service for credit management with atomic operations."""

    @staticmethod
    async def get_or_create_user(
        db: AsyncSession,
        user_id: str,
        email: Optional[str] = None,
        firebase_uid: Optional[str] = None,
    ) -> User:
        """
        Fetch a user, creating it with the configured starting balance if absent.
        """
        user = await db.get(User, user_id)
        if user is not None:
            return user

        user = User(
            id=user_id,
            email=email,
            firebase_uid=firebase_uid,
            credits=settings.starting_credits,
        )
        db.add(user)
        try:
            await db.commit()
        except IntegrityError:
            # Created concurrently by another request
            await db.rollback()
            user = await db.get(User, user_id)
            if user is None:
                raise
            return user
        await db.refresh(user)
        logger.info(
            f"Created user {user_id} with {settings.starting_credits} starting credits",
            extra={"event": "user_created", "user_id": user_id},
        )
        return user

    @staticmethod
    async def get_balance(db: AsyncSession, user_id: str) -> int:
        """
        Get current credit balance for user.
        Creates the user (with the starting balance) if it does not exist yet.
        """
        result = await db.execute(
            select(User.credits).where(User.id == user_id)
        )
        credits = result.scalar_one_or_none()
        if credits is None:
            user = await CreditService.get_or_create_user(db, user_id)
            return user.credits
        return credits

    @staticmethod
    async def authorize(db: AsyncSession, user_id: str, cost: int) -> bool:
        """
        Check whether the balance covers `cost`.

        Advisory only: the actual reservation is `consume`, which re-checks
        atomically. Never gate a write on this result alone.
        """
        if cost < 0:
            raise ValidationError("Cost must not be negative")
        return await CreditService.get_balance(db, user_id) >= cost

    @staticmethod
    async def apply_delta(db: AsyncSession, user_id: str, delta: int, reason: str) -> int:
        """
        Atomically add `delta` to the user's balance and return the new balance.

        A negative delta only applies if the balance covers it
        (UPDATE ... WHERE credits >= -delta); otherwise InsufficientCredits
        is raised and nothing changes.

        Raises:
            InsufficientCredits: balance < -delta
            NotFoundError: unknown user
        """
        statement = (
            update(User)
            .where(User.id == user_id)
            .values(credits=User.credits + delta)
        )
        if delta < 0:
            statement = statement.where(User.credits >= -delta)

        result = await db.execute(statement)

        if result.rowcount == 0:
            available = (
                await db.execute(select(User.credits).where(User.id == user_id))
            ).scalar_one_or_none()
            await db.rollback()
            if available is None:
                raise NotFoundError(f"User {user_id} not found")
            raise InsufficientCredits(required=-delta, available=available)

        new_balance = (
            await db.execute(select(User.credits).where(User.id == user_id))
        ).scalar_one()
        db.add(CreditTransaction(
            user_id=user_id,
            delta=delta,
            balance_after=new_balance,
            reason=reason,
        ))
        await db.commit()
        return new_balance

    @staticmethod
    async def consume(db: AsyncSession, user_id: str, cost: int, reason: str = "image_generation") -> int:
        """
        Reserve `cost` credits (check-and-decrement in one statement).

        Returns:
            Remaining balance

        Raises:
            ValueError: If cost is negative
            InsufficientCredits: balance < cost
        """
        if cost < 0:
            raise ValueError("Cannot debit negative amount")
        if cost == 0:
            return await CreditService.get_balance(db, user_id)

        balance = await CreditService.apply_delta(db, user_id, -cost, reason)
        credits_consumed_total.labels(reason=reason.split(":")[0]).inc(cost)
        log_credits_consumed(logger, user_id=user_id, amount=cost, balance=balance, reason=reason)
        return balance

    @staticmethod
    async def grant(db: AsyncSession, user_id: str, amount: int, reason: str) -> int:
        """
        Add credits to user balance.

        Raises:
            ValueError: If amount is negative or zero
        """
        if amount <= 0:
            raise ValueError("Credit amount must be positive")

        balance = await CreditService.apply_delta(db, user_id, amount, reason)
        credits_granted_total.labels(reason=reason.split(":")[0]).inc(amount)
        log_credits_granted(logger, user_id=user_id, amount=amount, balance=balance, reason=reason)
        return balance

    @staticmethod
    async def refund(db: AsyncSession, user_id: str, amount: int, reason: str = "refund:image_generation") -> int:
        """Give back credits reserved for an action that then failed."""
        if amount <= 0:
            return await CreditService.get_balance(db, user_id)
        return await CreditService.grant(db, user_id, amount, reason)

    @staticmethod
    async def grant_for_period(
        db: AsyncSession,
        user_id: str,
        amount: int,
        period: str,
        reason: str = "membership_grant",
    ) -> int:
        """
        Bring this `period`'s (e.g. "2024-01") grant up to `amount` credits.

        The first grant of a period adds `amount`. A later, larger grant in
        the same period (an upgrade) adds only the difference; an equal or
        smaller one adds nothing. The balance, the period and the granted
        amount are written by one UPDATE conditioned on the values read, so
        two concurrent requests cannot both grant.

        Returns:
            Credits added (0 if this period already received `amount` or more)

        Raises:
            NotFoundError: unknown user
        """
        if amount <= 0:
            raise ValueError("Credit amount must be positive")

        row = (
            await db.execute(
                select(User.membership_grant_period, User.membership_granted_credits)
                .where(User.id == user_id)
            )
        ).one_or_none()
        if row is None:
            await db.rollback()
            raise NotFoundError(f"User {user_id} not found")

        seen_period, seen_granted = row
        delta = amount - (seen_granted or 0) if seen_period == period else amount
        if delta <= 0:
            # Nothing to add; end the transaction without expiring loaded objects
            await db.commit()
            return 0

        result = await db.execute(
            update(User)
            .where(User.id == user_id)
            .where(
                User.membership_grant_period.is_(None)
                if seen_period is None
                else User.membership_grant_period == seen_period
            )
            .where(
                User.membership_granted_credits.is_(None)
                if seen_granted is None
                else User.membership_granted_credits == seen_granted
            )
            .values(
                credits=User.credits + delta,
                membership_grant_period=period,
                membership_granted_credits=amount,
            )
        )
        if result.rowcount == 0:
            # A concurrent grant changed the row first
            await db.commit()
            return 0

        new_balance = (
            await db.execute(select(User.credits).where(User.id == user_id))
        ).scalar_one()
        full_reason = f"{reason}:{period}"
        db.add(CreditTransaction(
            user_id=user_id,
            delta=delta,
            balance_after=new_balance,
            reason=full_reason,
        ))
        await db.commit()

        credits_granted_total.labels(reason=reason).inc(delta)
        log_credits_granted(logger, user_id=user_id, amount=delta, balance=new_balance, reason=full_reason)
        return delta

    @staticmethod
    async def list_transactions(db: AsyncSession, user_id: str, limit: int = 50) -> List[CreditTransaction]:
        """Most recent ledger entries for a user."""
        result = await db.execute(
            select(CreditTransaction)
            .where(CreditTransaction.user_id == user_id)
            .order_by(CreditTransaction.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
