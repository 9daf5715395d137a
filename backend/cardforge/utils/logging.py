"""
Production logging utility for structured JSON logging.

Provides event-specific logging functions with mandatory fields:
- timestamp (ISO8601)
- level
- service
- event

Optional fields (included when applicable):
- user_id
- order_id
- image_id
- duration_ms

Usage:
    from cardforge.utils.logging import configure_logging, log_image_generated

    configure_logging('cardforge-api', 'INFO')
    log_image_generated(logger, image_id='123', user_id='456', credits_used=6, duration_ms=812.4)
"""
import logging
import sys
from typing import Optional, Dict, Any
from pythonjsonlogger import jsonlogger


class StructuredLogger:
    """Structured JSON logger with mandatory fields."""

    _service_name = None
    _configured = False

    @classmethod
    def configure(cls, service_name: str, log_level: str = "INFO"):
        """
        Configure structured JSON logging for the application.

        Args:
            service_name: Service identifier (e.g. cardforge-api)
            log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        """
        if cls._configured:
            return  # Already configured

        cls._service_name = service_name

        # Remove default handlers
        root_logger = logging.getLogger()
        root_logger.handlers = []

        formatter = jsonlogger.JsonFormatter(
            '%(timestamp)s %(levelname)s %(name)s %(message)s',
            timestamp=True,
            json_ensure_ascii=False
        )

        # Console handler (container logs)
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(formatter)

        root_logger.addHandler(handler)
        root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

        # Add service name to all log records via filter
        class ServiceFilter(logging.Filter):
            def filter(self, record):
                record.service = cls._service_name
                return True

        handler.addFilter(ServiceFilter())
        cls._configured = True


def _build_log_extra(
    event: str,
    user_id: Optional[str] = None,
    order_id: Optional[str] = None,
    image_id: Optional[str] = None,
    duration_ms: Optional[float] = None,
    **kwargs
) -> Dict[str, Any]:
    """
    Build extra fields for structured logging.

    Args:
        event: Event name (mandatory)
        user_id: Optional user ID
        order_id: Optional order ID
        image_id: Optional generated image ID
        duration_ms: Optional duration in milliseconds
        **kwargs: Additional fields

    Returns:
        Dictionary of extra fields
    """
    extra = {
        "event": event,
        **kwargs
    }

    if user_id:
        extra["user_id"] = user_id
    if order_id:
        extra["order_id"] = order_id
    if image_id:
        extra["image_id"] = image_id
    if duration_ms is not None:
        extra["duration_ms"] = round(duration_ms, 2)

    return extra


# Credit ledger events

def log_credits_consumed(
    logger: logging.Logger,
    user_id: str,
    amount: int,
    balance: int,
    reason: str,
    **kwargs
):
    """Log a credit reservation/consumption."""
    extra = _build_log_extra(
        event="credits_consumed",
        user_id=user_id,
        amount=amount,
        balance=balance,
        reason=reason,
        **kwargs
    )
    logger.info(f"Consumed {amount} credits for user {user_id}", extra=extra)


def log_credits_granted(
    logger: logging.Logger,
    user_id: str,
    amount: int,
    balance: int,
    reason: str,
    **kwargs
):
    """Log credits added to a balance (grant or refund)."""
    event = "credits_refunded" if reason.startswith("refund") else "credits_granted"
    extra = _build_log_extra(
        event=event,
        user_id=user_id,
        amount=amount,
        balance=balance,
        reason=reason,
        **kwargs
    )
    logger.info(f"Added {amount} credits for user {user_id} ({reason})", extra=extra)


def log_membership_resolved(
    logger: logging.Logger,
    user_id: str,
    tier: str,
    cached: bool,
    **kwargs
):
    """Log membership tier resolution (cache hit or provider lookup)."""
    extra = _build_log_extra(
        event="membership_resolved",
        user_id=user_id,
        tier=tier,
        cached=cached,
        **kwargs
    )
    logger.info(f"Membership for user {user_id}: {tier} ({'cached' if cached else 'fetched'})", extra=extra)


# Image generation events

def log_image_generated(
    logger: logging.Logger,
    image_id: str,
    user_id: str,
    credits_used: int,
    duration_ms: Optional[float] = None,
    **kwargs
):
    """
    Log successful image generation.

    Args:
        logger: Logger instance
        image_id: Stored ImageMetadata ID (required)
        user_id: User ID (required)
        credits_used: Credits charged (required)
        duration_ms: Optional duration in milliseconds
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event="image_generated",
        image_id=image_id,
        user_id=user_id,
        duration_ms=duration_ms,
        credits_used=credits_used,
        **kwargs
    )
    logger.info(f"Image generated: {image_id}", extra=extra)


def log_image_generation_failed(
    logger: logging.Logger,
    user_id: str,
    error: str,
    duration_ms: Optional[float] = None,
    refunded: Optional[int] = None,
    include_traceback: bool = True,
    **kwargs
):
    """
    Log image generation failure.

    Args:
        logger: Logger instance
        user_id: User ID (required)
        error: Error message (required)
        duration_ms: Optional duration in milliseconds
        refunded: Credits given back after the failure
        include_traceback: Whether to include stack trace
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event="image_generation_failed",
        user_id=user_id,
        duration_ms=duration_ms,
        error=str(error),
        **kwargs
    )
    if refunded is not None:
        extra["refunded"] = refunded

    message = f"Image generation failed for user {user_id} - {error}"

    if include_traceback and sys.exc_info()[0] is not None:
        logger.error(message, extra=extra, exc_info=sys.exc_info())
    else:
        logger.error(message, extra=extra)


# Order events

def log_order_created(
    logger: logging.Logger,
    order_id: str,
    user_id: str,
    payment_session_id: str,
    total_cents: int,
    **kwargs
):
    """Log a new pending print order."""
    extra = _build_log_extra(
        event="order_created",
        order_id=order_id,
        user_id=user_id,
        payment_session_id=payment_session_id,
        total_cents=total_cents,
        **kwargs
    )
    logger.info(f"Order created: {order_id}", extra=extra)


def log_order_status_changed(
    logger: logging.Logger,
    order_id: str,
    old_status: str,
    new_status: str,
    **kwargs
):
    """Log an order status transition."""
    extra = _build_log_extra(
        event="order_status_changed",
        order_id=order_id,
        old_status=old_status,
        new_status=new_status,
        **kwargs
    )
    logger.info(f"Order {order_id}: {old_status} -> {new_status}", extra=extra)


# Provider event functions

def log_provider_request(
    logger: logging.Logger,
    provider: str,
    operation: str,
    duration_ms: Optional[float] = None,
    **kwargs
):
    """
    Log external provider request event.

    Args:
        logger: Logger instance
        provider: Provider name (fal, storage, stripe, membership) (required)
        operation: Operation name (generate, upload, checkout, ...) (required)
        duration_ms: Optional duration in milliseconds
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event="provider_request",
        duration_ms=duration_ms,
        provider=provider,
        operation=operation,
        **kwargs
    )

    logger.info(f"Provider request: {provider}.{operation}", extra=extra)


def log_provider_failure(
    logger: logging.Logger,
    provider: str,
    operation: str,
    error: str,
    duration_ms: Optional[float] = None,
    include_traceback: bool = False,
    **kwargs
):
    """
    Log external provider failure event.

    Args:
        logger: Logger instance
        provider: Provider name (required)
        operation: Operation name (required)
        error: Error message (required)
        duration_ms: Optional duration in milliseconds
        include_traceback: Whether to include stack trace (default: False for provider failures)
        **kwargs: Additional fields
    """
    extra = _build_log_extra(
        event="provider_failure",
        duration_ms=duration_ms,
        provider=provider,
        operation=operation,
        error=str(error),
        **kwargs
    )

    message = f"Provider failure: {provider}.{operation} - {error}"

    if include_traceback and sys.exc_info()[0] is not None:
        logger.error(message, extra=extra, exc_info=sys.exc_info())
    else:
        logger.error(message, extra=extra)


def configure_logging(service_name: str, log_level: str = "INFO"):
    """Configure logging (alias for StructuredLogger.configure)."""
    StructuredLogger.configure(service_name, log_level)
