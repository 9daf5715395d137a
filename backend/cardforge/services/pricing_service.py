"""
Pricing rules: tiered bulk pricing for print orders and credit cost of
AI image generation.

Everything here is pure; configuration is passed in (defaults come from
settings) so the same functions serve the API, the checkout recomputation
and the tests.
"""
import logging
import math
import re
from dataclasses import dataclass
from fractions import Fraction
from typing import List, Optional, Sequence

from cardforge.config import settings
from cardforge.errors import NoMatchingTier, ValidationError

logger = logging.getLogger(__name__)

ON_NO_MATCH_REJECT = "reject"
ON_NO_MATCH_FALLBACK = "fallback"


@dataclass(frozen=True)
class Tier:
    """A quantity range with its per-unit price. `max_quantity=None` means unbounded."""
    min_quantity: int
    max_quantity: Optional[int]
    price_per_unit_cents: int

    def matches(self, quantity: int) -> bool:
        return quantity >= self.min_quantity and (
            self.max_quantity is None or quantity <= self.max_quantity
        )


# Print pricing, checked in order; first match wins
PRINT_PRICING_TIERS: List[Tier] = [
    Tier(min_quantity=1, max_quantity=9, price_per_unit_cents=200),
    Tier(min_quantity=10, max_quantity=49, price_per_unit_cents=150),
    Tier(min_quantity=50, max_quantity=99, price_per_unit_cents=125),
    Tier(min_quantity=100, max_quantity=None, price_per_unit_cents=100),
]


def validate_tiers(tiers: Sequence[Tier]) -> List[str]:
    """
    Check a tier table for gaps and overlaps.

    Returns a list of human-readable problems (empty if the table is
    contiguous, non-overlapping and only the last tier is unbounded).
    """
    problems = []
    for index, tier in enumerate(tiers):
        if tier.min_quantity < 1:
            problems.append(f"tier {index}: min_quantity must be >= 1")
        if tier.max_quantity is not None and tier.max_quantity < tier.min_quantity:
            problems.append(f"tier {index}: max_quantity < min_quantity")
        if tier.price_per_unit_cents < 0:
            problems.append(f"tier {index}: negative price")
        if index == 0:
            continue
        previous = tiers[index - 1]
        if previous.max_quantity is None:
            problems.append(f"tier {index}: unreachable, tier {index - 1} is unbounded")
        elif tier.min_quantity <= previous.max_quantity:
            problems.append(f"tier {index}: overlaps tier {index - 1}")
        elif tier.min_quantity > previous.max_quantity + 1:
            problems.append(
                f"gap between tier {index - 1} and tier {index}: "
                f"{previous.max_quantity + 1}-{tier.min_quantity - 1}"
            )
    return problems


def unit_price_for_quantity(
    quantity: int,
    tiers: Sequence[Tier] = PRINT_PRICING_TIERS,
    on_no_match: Optional[str] = None,
    fallback_unit_cents: Optional[int] = None,
) -> int:
    """
    Per-unit price in cents for an order quantity.

    Raises:
        ValidationError: quantity < 1
        NoMatchingTier: no tier matches and the policy is "reject"
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
        raise ValidationError("Quantity must be at least 1")

    for tier in tiers:
        if tier.matches(quantity):
            return tier.price_per_unit_cents

    policy = on_no_match or settings.pricing_on_no_match
    if policy == ON_NO_MATCH_FALLBACK:
        fallback = settings.pricing_fallback_unit_cents if fallback_unit_cents is None else fallback_unit_cents
        logger.warning(
            f"No pricing tier matched quantity {quantity}; using fallback price {fallback}",
            extra={"event": "pricing_fallback", "quantity": quantity},
        )
        return fallback
    raise NoMatchingTier(quantity)


def price_for_quantity(
    quantity: int,
    tiers: Sequence[Tier] = PRINT_PRICING_TIERS,
    on_no_match: Optional[str] = None,
    fallback_unit_cents: Optional[int] = None,
) -> int:
    """Total charge in cents: tier unit price x quantity."""
    return unit_price_for_quantity(quantity, tiers, on_no_match, fallback_unit_cents) * quantity


# ============= Image credit cost =============

@dataclass(frozen=True)
class ImageSize:
    width: int
    height: int

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


# Named sizes understood by the image provider
IMAGE_SIZE_PRESETS = {
    "square_hd": ImageSize(1024, 1024),
    "square": ImageSize(512, 512),
    "portrait_4_3": ImageSize(768, 1024),
    "portrait_16_9": ImageSize(576, 1024),
    "landscape_4_3": ImageSize(1024, 768),
    "landscape_16_9": ImageSize(1024, 576),
}

MIN_IMAGE_SIDE = 64
MAX_IMAGE_SIDE = 2048

_SIZE_PATTERN = re.compile(r"^\s*(\d+)\s*[xX×]\s*(\d+)\s*$")


def parse_image_size(value: str) -> ImageSize:
    """
    Parse "WxH" (e.g. "1024x576") or a provider preset name.

    Raises:
        ValidationError: malformed value or side outside the allowed range
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("imageSize is required")

    preset = IMAGE_SIZE_PRESETS.get(value.strip().lower())
    if preset is not None:
        return preset

    match = _SIZE_PATTERN.match(value)
    if not match:
        raise ValidationError(
            f"Invalid imageSize '{value}'. Use 'WIDTHxHEIGHT' or one of: "
            f"{', '.join(sorted(IMAGE_SIZE_PRESETS))}"
        )

    width, height = int(match.group(1)), int(match.group(2))
    for side in (width, height):
        if not MIN_IMAGE_SIDE <= side <= MAX_IMAGE_SIDE:
            raise ValidationError(
                f"Image sides must be between {MIN_IMAGE_SIDE} and {MAX_IMAGE_SIDE} pixels"
            )
    return ImageSize(width, height)


def credit_cost(width: int, height: int, rate_per_megapixel: Optional[int] = None) -> int:
    """
    Credits charged for an image: ceil(megapixels x rate).

    Uses exact fractions so a fractional megapixel count is never rounded
    down by float error.
    """
    if width <= 0 or height <= 0:
        raise ValidationError("Image width and height must be positive")
    rate = settings.credits_per_megapixel if rate_per_megapixel is None else rate_per_megapixel
    if rate < 0:
        raise ValidationError("Credit rate must not be negative")
    return math.ceil(Fraction(width * height, 1_000_000) * rate)
