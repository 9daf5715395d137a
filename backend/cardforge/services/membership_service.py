"""
Membership service: resolves a user's subscription tier and turns it into
periodic credit grants.

The tier is cached on the user row (membership_tier / membership_expiry,
unix ms) for `membership_cache_ttl_seconds`. Grants are additive and applied
once per calendar month through CreditService.grant_for_period; an upgrade
within the month tops the grant up to the new tier's amount.
"""
import enum
import logging
import time
from datetime import datetime, timezone
from typing import Dict, Optional

import httpx
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from cardforge.config import settings
from cardforge.errors import AuthError, UpstreamError
from cardforge.services.credit_service import CreditService
from cardforge.utils.logging import log_membership_resolved, log_provider_failure
from cardforge.utils.metrics import provider_failures_total, provider_requests_total
from cardforge.utils.retry import retry_idempotent

logger = logging.getLogger(__name__)


class MembershipTier(str, enum.Enum):
    """Subscription status as seen by this service."""
    NONE = "none"
    FORMER = "former"
    ACTIVE = "active"


# Provider patron_status -> tier
PATRON_STATUS_TIERS = {
    "active_patron": MembershipTier.ACTIVE,
    "former_patron": MembershipTier.FORMER,
}


def membership_grants() -> Dict[MembershipTier, int]:
    """Credits granted per period for each tier."""
    return {
        MembershipTier.ACTIVE: settings.membership_grant_active,
        MembershipTier.FORMER: settings.membership_grant_former,
        MembershipTier.NONE: 0,
    }


def current_period(now: Optional[datetime] = None) -> str:
    """Grant period key, e.g. "2024-01"."""
    now = now or datetime.now(timezone.utc)
    return now.strftime("%Y-%m")


def _now_ms() -> int:
    return int(time.time() * 1000)


class MembershipClient:
    """
    Subscription provider client (Patreon-style OAuth identity endpoint).

    The lookup is an idempotent GET, so it is retried with a fixed delay.
    """

    name = "membership"

    def __init__(self, http_client: httpx.AsyncClient, api_url: Optional[str] = None):
        self.http_client = http_client
        self.api_url = api_url or settings.membership_api_url

    async def fetch_tier(self, access_token: str) -> MembershipTier:
        """
        Look up the tier for the owner of `access_token`.

        Raises:
            AuthError: provider rejected the token
            UpstreamError: provider unreachable after retries
        """
        async def call() -> dict:
            response = await self.http_client.get(
                self.api_url,
                headers={"Authorization": f"Bearer {access_token}"},
                timeout=settings.outbound_timeout_seconds,
            )
            response.raise_for_status()
            return response.json()

        provider_requests_total.labels(provider=self.name, operation="identity").inc()
        try:
            payload = await retry_idempotent(
                call,
                attempts=settings.outbound_retry_attempts,
                delay_seconds=settings.outbound_retry_delay_seconds,
                operation="membership_lookup",
            )
        except httpx.HTTPStatusError as e:
            provider_failures_total.labels(provider=self.name, operation="identity").inc()
            if e.response.status_code in (401, 403):
                raise AuthError("Membership token was rejected by the provider") from e
            log_provider_failure(logger, provider=self.name, operation="identity", error=str(e))
            if e.response.status_code == 429:
                raise UpstreamError("Membership provider rate limit exceeded", kind="rate_limited", provider=self.name) from e
            raise UpstreamError("Membership provider unavailable", provider=self.name) from e
        except httpx.TimeoutException as e:
            provider_failures_total.labels(provider=self.name, operation="identity").inc()
            log_provider_failure(logger, provider=self.name, operation="identity", error="timeout")
            raise UpstreamError("Membership provider timed out", kind="timeout", provider=self.name) from e
        except httpx.HTTPError as e:
            provider_failures_total.labels(provider=self.name, operation="identity").inc()
            log_provider_failure(logger, provider=self.name, operation="identity", error=str(e))
            raise UpstreamError("Membership provider unavailable", provider=self.name) from e

        return self.parse_tier(payload)

    @staticmethod
    def parse_tier(payload: dict) -> MembershipTier:
        """
        Extract the best tier from an identity response.

        Any active membership wins over a former one.
        """
        best = MembershipTier.NONE
        for item in payload.get("included") or []:
            if item.get("type") != "member":
                continue
            status = (item.get("attributes") or {}).get("patron_status")
            tier = PATRON_STATUS_TIERS.get(status, MembershipTier.NONE)
            if tier == MembershipTier.ACTIVE:
                return tier
            if tier == MembershipTier.FORMER:
                best = tier
        return best


def get_membership_client(request: Request) -> MembershipClient:
    """FastAPI dependency: membership client on the app's HTTP client."""
    return MembershipClient(request.app.state.http_client)


class MembershipService:
    """Service for membership resolution and grants."""

    @staticmethod
    async def resolve_membership(
        db: AsyncSession,
        client: MembershipClient,
        user_id: str,
        access_token: str,
        now_ms: Optional[int] = None,
    ) -> MembershipTier:
        """
        Return the user's tier, using the cached value while it is fresh.

        A hit makes no outbound call; a miss or an expired entry makes exactly
        one lookup and stores the result with a new expiry.
        """
        now_ms = _now_ms() if now_ms is None else now_ms
        user = await CreditService.get_or_create_user(db, user_id)

        if user.membership_tier is not None and user.membership_expiry is not None and user.membership_expiry > now_ms:
            tier = MembershipTier(user.membership_tier)
            log_membership_resolved(logger, user_id=user_id, tier=tier.value, cached=True)
            return tier

        tier = await client.fetch_tier(access_token)
        user.membership_tier = tier.value
        user.membership_expiry = now_ms + settings.membership_cache_ttl_seconds * 1000
        await db.commit()

        log_membership_resolved(logger, user_id=user_id, tier=tier.value, cached=False)
        return tier

    @staticmethod
    async def grant_for_tier(
        db: AsyncSession,
        user_id: str,
        tier: MembershipTier,
        now: Optional[datetime] = None,
    ) -> int:
        """
        Add this period's credits for `tier`.

        Returns:
            Credits granted (0 if the tier grants nothing or this period already
            received at least this tier's amount; an upgrade gets the difference)
        """
        amount = membership_grants()[tier]
        if amount <= 0:
            return 0

        return await CreditService.grant_for_period(
            db,
            user_id,
            amount,
            period=current_period(now),
            reason=f"membership_{tier.value}",
        )

    @staticmethod
    async def refresh_and_grant(
        db: AsyncSession,
        client: MembershipClient,
        user_id: str,
        access_token: str,
        now: Optional[datetime] = None,
    ) -> Dict[str, object]:
        """Resolve the tier, then apply the period grant."""
        now = now or datetime.now(timezone.utc)
        tier = await MembershipService.resolve_membership(
            db, client, user_id, access_token, now_ms=int(now.timestamp() * 1000)
        )
        granted = await MembershipService.grant_for_tier(db, user_id, tier, now=now)
        return {"tier": tier, "granted": granted}
