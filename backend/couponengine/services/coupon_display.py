"""Read-only coupon view handed to price displays.

Display code gets a ``CouponDiscountView`` instead of the ``CouponState``
itself, so it can read the active coupon and compute prices but cannot
apply or clear coupons.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from couponengine.schemas.coupon import Coupon
from couponengine.services.coupon_state import CouponExpiryInfo, CouponState
from couponengine.services.discount_calculator import DiscountCalculationResult, DiscountCalculator
from couponengine.services.price_extractor import PriceExtractor


@dataclass(frozen=True)
class PriceSummary:
    """What a single-price display shows."""

    current: str
    is_discounted: bool
    original: str | None = None
    badge: str = ""
    savings: str | None = None
    coupon_note: str | None = None


@dataclass(frozen=True)
class RangeSummary:
    """What a price-range display shows."""

    current: str
    is_discounted: bool
    original: str | None = None
    badge: str = ""
    savings: str | None = None


@dataclass(frozen=True)
class CouponDisplayInfo:
    coupon: Coupon
    formatted_message: str
    expiry_info: CouponExpiryInfo
    display_text: str


class CouponDiscountView:
    """Narrow read interface over a session's coupon state."""

    def __init__(self, state: CouponState):
        self._state = state

    @property
    def active_coupon(self) -> Coupon | None:
        return self._state.active_coupon

    @property
    def has_active_coupon(self) -> bool:
        return self._state.has_active_coupon

    @property
    def discount_percent(self) -> Decimal:
        coupon = self._state.active_coupon
        return coupon.discount_percent if coupon else Decimal("0")

    def get_coupon_discount(self, coupon: Coupon | None, price: Any) -> DiscountCalculationResult:
        return self._state.get_coupon_discount(coupon, price)

    def get_discounted_price(self, coupon: Coupon | None, price: Any) -> Decimal:
        return self._state.get_discounted_price(coupon, price)

    def get_discount_display(self, coupon: Coupon | None) -> str:
        return self._state.get_discount_display(coupon)

    def coupon_info(self) -> CouponDisplayInfo | None:
        coupon = self._state.active_coupon
        if coupon is None:
            return None
        return CouponDisplayInfo(
            coupon=coupon,
            formatted_message=self._state.format_coupon_message(coupon),
            expiry_info=self._state.check_coupon_expiry(coupon),
            display_text=self._state.get_discount_display(coupon),
        )

    def price_summary(self, price: Any, currency: str | None = None) -> PriceSummary:
        coupon = self._state.active_coupon
        result = self._state.get_coupon_discount(coupon, price)
        symbol = currency or PriceExtractor.detect_currency(price)

        if not (result.is_discounted and coupon is not None):
            return PriceSummary(
                current=PriceExtractor.format_price(result.original_price, symbol),
                is_discounted=False,
            )

        return PriceSummary(
            current=PriceExtractor.format_price(result.discounted_price, symbol),
            is_discounted=True,
            original=PriceExtractor.format_price(result.original_price, symbol),
            badge=DiscountCalculator.get_discount_badge(result.discount_percent),
            savings=f"You save {PriceExtractor.format_price(result.discount_amount, symbol)}",
            coupon_note=f"with coupon {coupon.code}",
        )

    def range_summary(self, range_text: str) -> RangeSummary:
        coupon = self._state.active_coupon
        discounted = DiscountCalculator.apply_coupon_discount_to_range(
            range_text, coupon, self._state.clock()
        )

        if not discounted.is_discounted:
            # Shown exactly as given when there is nothing to take off.
            return RangeSummary(current=range_text, is_discounted=False)

        return RangeSummary(
            current=DiscountCalculator.format_discounted_price_range(discounted, show_original=False),
            is_discounted=True,
            original=PriceExtractor.format_price_range(discounted.original),
            badge=DiscountCalculator.get_discount_badge(discounted.discount.percent),
            savings=(
                "Save up to "
                f"{PriceExtractor.format_price(discounted.discount.max_savings, discounted.original.currency)}"
            ),
        )
