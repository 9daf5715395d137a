"""
Bounded fixed-delay retry for idempotent outbound reads.

Only wrap calls that are safe to repeat (GETs). Provider generation,
payment-session creation and ledger writes must not go through here.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Tuple, Type, TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}


def is_retryable(exc: BaseException) -> bool:
    """Transport errors and transient HTTP statuses are worth another attempt."""
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS_CODES
    return False


async def retry_idempotent(
    call: Callable[[], Awaitable[T]],
    attempts: int = 3,
    delay_seconds: float = 1.0,
    operation: str = "request",
    retry_on: Tuple[Type[BaseException], ...] = (httpx.HTTPError,),
) -> T:
    """
    Run `call` up to `attempts` times, sleeping `delay_seconds` between tries.

    Non-retryable errors (e.g. HTTP 404) are raised immediately; the last
    retryable error is raised once attempts are exhausted.
    """
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        try:
            return await call()
        except retry_on as exc:
            if attempt == attempts or not is_retryable(exc):
                raise
            logger.warning(
                f"Retrying {operation} ({attempt}/{attempts - 1}) after error: {exc}",
                extra={"event": "outbound_retry", "operation": operation, "attempt": attempt},
            )
            await asyncio.sleep(delay_seconds)
    raise RuntimeError("unreachable")
