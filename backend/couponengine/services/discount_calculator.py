"""Discount arithmetic for single prices, price ranges and whole orders.

Nothing in this module raises on bad input: prices are coerced through
``to_decimal``/``PriceExtractor`` and a missing, inactive or expired coupon is
reported through ``is_discounted`` rather than an exception.
"""

import math
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, localcontext
from typing import Any

from couponengine.models.shared import as_utc, utc_now
from couponengine.schemas.coupon import Coupon
from couponengine.services.price_extractor import (
    DEFAULT_CURRENCY,
    PriceExtractor,
    PriceRange,
    quantize_money,
    to_decimal,
)

HUNDRED = Decimal("100")
ZERO = Decimal("0")

_SAVINGS_RE = re.compile(r"save[sd]?\s*(?:up to\s*)?[^\w\s]*\s*(\d[\d,]*(?:\.\d+)?)", re.IGNORECASE)


@dataclass(frozen=True)
class DiscountCalculationResult:
    """Outcome of discounting one price."""

    original_price: Decimal
    discounted_price: Decimal
    discount_amount: Decimal
    discount_percent: Decimal
    is_discounted: bool
    savings: str


@dataclass(frozen=True)
class RangeDiscount:
    percent: Decimal
    min_savings: Decimal
    max_savings: Decimal


@dataclass(frozen=True)
class DiscountedPriceRange:
    """Both endpoints of a price range, before and after the discount."""

    original: PriceRange
    discounted: PriceRange
    discount: RangeDiscount

    @property
    def is_discounted(self) -> bool:
        return self.discount.min_savings > 0 or self.discount.max_savings > 0


@dataclass(frozen=True)
class BulkDiscountLine:
    discount: DiscountCalculationResult
    quantity: int
    line_total: Decimal
    line_savings: Decimal


@dataclass(frozen=True)
class BulkDiscountResult:
    total_original: Decimal
    total_discounted: Decimal
    total_savings: Decimal
    lines: list[BulkDiscountLine] = field(default_factory=list)


@dataclass(frozen=True)
class DiscountTier:
    min_value: Decimal
    discount_percent: Decimal


@dataclass(frozen=True)
class TieredDiscountResult:
    applied_tier: DiscountTier | None
    discount: DiscountCalculationResult


@dataclass(frozen=True)
class MinimumOrderCheck:
    is_valid: bool
    required_amount: Decimal | None = None
    shortfall: Decimal | None = None


def _clamp_percent(percent: Any) -> Decimal:
    value = to_decimal(percent)
    return min(max(value, ZERO), HUNDRED)


def percent_label(percent: Any) -> str:
    """Render a percentage without trailing zeros: ``20``, ``12.5``."""
    value = to_decimal(percent)
    if value == value.to_integral_value():
        return str(int(value))
    return f"{value.normalize():f}"


def usable_coupon(coupon: Coupon | None, now: datetime | None = None) -> Coupon | None:
    """Return the coupon if it can discount anything right now, else None."""
    if coupon is None or not coupon.is_active:
        return None
    if coupon.is_expired(now):
        return None
    return coupon


def days_until_expiry(coupon: Coupon, now: datetime | None = None) -> int | None:
    """Whole days (rounded up) until the coupon expires; None if it never does."""
    if coupon.expiry_date is None:
        return None
    remaining = coupon.expiry_date - as_utc(now or utc_now())
    return math.ceil(remaining.total_seconds() / 86400)


class DiscountCalculator:
    """Percentage discounts against the original price, never compounded."""

    @staticmethod
    def apply_discount(
        price: Any,
        discount_percent: Any,
        max_discount: Any = None,
        currency: str = DEFAULT_CURRENCY,
    ) -> DiscountCalculationResult:
        """Apply a raw percentage to one price.

        The percent is clamped to [0, 100] and the amount to the price itself,
        so the discounted price never goes negative. Amount and discounted
        price are both rounded to the cent so they always agree with the
        formatted savings.

        Args:
            price: A number or a formatted price string.
            discount_percent: Percentage of the original price to take off.
            max_discount: Optional absolute cap on the discount amount.
            currency: Symbol used for the ``savings`` string.

        Returns:
            DiscountCalculationResult for the price.
        """
        original = quantize_money(max(to_decimal(price), ZERO))
        percent = _clamp_percent(discount_percent)

        with localcontext() as ctx:
            # Exact arithmetic for amounts wider than the default precision.
            ctx.prec = max(ctx.prec, original.adjusted() + 8)
            amount = quantize_money(original * percent / HUNDRED)
            if max_discount is not None:
                amount = min(amount, quantize_money(max(to_decimal(max_discount), ZERO)))
            amount = min(amount, original)
            discounted = original - amount

        return DiscountCalculationResult(
            original_price=original,
            discounted_price=discounted,
            discount_amount=amount,
            discount_percent=percent,
            is_discounted=amount > 0,
            savings=PriceExtractor.format_price(amount, currency),
        )

    @classmethod
    def apply_discount_to_range(
        cls,
        price_range: PriceRange | str,
        discount_percent: Any,
        max_discount: Any = None,
    ) -> DiscountedPriceRange:
        """Discount each endpoint of a range independently.

        The ``max_discount`` cap is applied per endpoint, so the two savings
        can differ even though the percent is shared.
        """
        if not isinstance(price_range, PriceRange):
            price_range = PriceExtractor.extract_price_range(price_range)

        low = cls.apply_discount(price_range.min, discount_percent, max_discount, price_range.currency)
        high = cls.apply_discount(
            price_range.max, discount_percent, max_discount, price_range.currency
        )

        return DiscountedPriceRange(
            original=PriceRange(
                min=low.original_price, max=high.original_price, currency=price_range.currency
            ),
            discounted=PriceRange(
                min=low.discounted_price, max=high.discounted_price, currency=price_range.currency
            ),
            discount=RangeDiscount(
                percent=low.discount_percent,
                min_savings=low.discount_amount,
                max_savings=high.discount_amount,
            ),
        )

    @classmethod
    def apply_coupon_discount(
        cls,
        price: Any,
        coupon: Coupon | None,
        now: datetime | None = None,
    ) -> DiscountCalculationResult:
        """Discount one price with a coupon.

        A missing, inactive or expired coupon gives back the original price
        with ``is_discounted`` False.
        """
        currency = PriceExtractor.detect_currency(price)
        active = usable_coupon(coupon, now)
        if active is None:
            return cls.apply_discount(price, ZERO, currency=currency)
        return cls.apply_discount(price, active.discount_percent, active.max_discount, currency)

    @classmethod
    def apply_coupon_discount_to_range(
        cls,
        range_text: PriceRange | str,
        coupon: Coupon | None,
        now: datetime | None = None,
    ) -> DiscountedPriceRange:
        """Discount a price range with a coupon.

        Always returns a range; without a usable coupon ``discounted`` equals
        ``original`` and ``is_discounted`` is False.
        """
        active = usable_coupon(coupon, now)
        if active is None:
            return cls.apply_discount_to_range(range_text, ZERO)
        return cls.apply_discount_to_range(range_text, active.discount_percent, active.max_discount)

    @staticmethod
    def format_discounted_price(
        original_price: Any,
        discounted_price: Any,
        show_original: bool = True,
        currency: str = DEFAULT_CURRENCY,
    ) -> str:
        original = to_decimal(original_price)
        discounted = to_decimal(discounted_price)
        if original == discounted:
            return PriceExtractor.format_price(original, currency)

        discounted_text = PriceExtractor.format_price(discounted, currency)
        if not show_original:
            return discounted_text
        return f"{discounted_text} (was {PriceExtractor.format_price(original, currency)})"

    @staticmethod
    def format_discounted_price_range(
        discounted_range: DiscountedPriceRange,
        show_original: bool = True,
    ) -> str:
        discounted_text = PriceExtractor.format_price_range(discounted_range.discounted)
        if not show_original or discounted_range.discount.percent == 0:
            return discounted_text
        original_text = PriceExtractor.format_price_range(discounted_range.original)
        return f"{discounted_text} (was {original_text})"

    @classmethod
    def calculate_bulk_discount(
        cls,
        items: Iterable[tuple[Any, int]],
        discount_percent: Any,
    ) -> BulkDiscountResult:
        """Discount every ``(price, quantity)`` line of an order at one percent."""
        lines: list[BulkDiscountLine] = []
        total_original = ZERO
        total_discounted = ZERO

        for price, quantity in items:
            quantity = max(int(to_decimal(quantity)), 0)
            discount = cls.apply_discount(price, discount_percent)
            line_total = discount.discounted_price * quantity
            lines.append(
                BulkDiscountLine(
                    discount=discount,
                    quantity=quantity,
                    line_total=line_total,
                    line_savings=discount.discount_amount * quantity,
                )
            )
            total_original += discount.original_price * quantity
            total_discounted += line_total

        return BulkDiscountResult(
            total_original=total_original,
            total_discounted=total_discounted,
            total_savings=total_original - total_discounted,
            lines=lines,
        )

    @classmethod
    def calculate_tiered_discount(
        cls,
        order_value: Any,
        tiers: Iterable[DiscountTier],
    ) -> TieredDiscountResult:
        """Pick the highest tier the order value reaches and discount at its percent."""
        value = to_decimal(order_value)
        applied = None
        for tier in sorted(tiers, key=lambda t: to_decimal(t.min_value), reverse=True):
            if value >= to_decimal(tier.min_value):
                applied = tier
                break

        percent = applied.discount_percent if applied else ZERO
        return TieredDiscountResult(applied_tier=applied, discount=cls.apply_discount(value, percent))

    @staticmethod
    def validate_minimum_order(total_value: Any, coupon: Coupon | None) -> MinimumOrderCheck:
        if coupon is None or not coupon.min_order_value:
            return MinimumOrderCheck(is_valid=True)

        total = to_decimal(total_value)
        required = coupon.min_order_value
        is_valid = total >= required
        return MinimumOrderCheck(
            is_valid=is_valid,
            required_amount=required,
            shortfall=ZERO if is_valid else required - total,
        )

    @staticmethod
    def get_discount_badge(discount_percent: Any) -> str:
        percent = to_decimal(discount_percent)
        if percent <= 0:
            return ""
        label = percent_label(percent)
        if percent >= 50:
            return f"{label}% OFF - HUGE SAVINGS!"
        if percent >= 25:
            return f"{label}% OFF - GREAT DEAL!"
        return f"{label}% OFF"


def has_discount(price_text: str) -> bool:
    """True if a rendered price string already carries discount markup."""
    return "was" in price_text or "(" in price_text or "OFF" in price_text


def extract_savings(discount_text: str) -> Decimal:
    """Pull the amount out of text like ``"You save ₹30.00"``; 0 if absent."""
    match = _SAVINGS_RE.search(discount_text)
    if not match:
        return ZERO
    return Decimal(match.group(1).replace(",", ""))


def generate_coupon_summary(
    coupon: Coupon,
    order_value: Any = None,
    now: datetime | None = None,
) -> str:
    parts = [f"{percent_label(coupon.discount_percent)}% discount"]

    if coupon.min_order_value and order_value is not None:
        if to_decimal(order_value) >= coupon.min_order_value:
            parts.append("✓ Minimum met")
        else:
            parts.append(f"Minimum: {PriceExtractor.format_price(coupon.min_order_value)}")

    days_left = days_until_expiry(coupon, now)
    if days_left is not None:
        parts.append(f"{days_left} days left" if days_left > 0 else "EXPIRED")

    return " • ".join(parts)


def format_percent(percent: Any) -> str:
    rounded = quantize_money(to_decimal(percent), Decimal("0.1"))
    return f"{percent_label(rounded)}%"
