"""Conversion between currency-formatted display strings and Decimal amounts."""

import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Any

from couponengine.core.config import settings

DEFAULT_CURRENCY = settings.DEFAULT_CURRENCY_SYMBOL
CENT = Decimal("0.01")

_THOUSANDS_RE = re.compile(r"(?<=\d),(?=\d)")
# A minus sign counts only when it is not glued to a word, e.g. "₹-5.00" but not "SKU-42".
_NUMBER_RE = re.compile(r"(?:(?<![\w.])-)?\d+(?:\.\d+)?")
# A run of symbol characters (₹, $, €, ...) directly before the first number.
_CURRENCY_RE = re.compile(r"([^\w\s.,:;()\-–—]+)\s*-?\d")
_RANGE_SEPARATOR_RE = re.compile(r"\s*(?:-|–|—|\bto\b)\s*")


@dataclass(frozen=True)
class PriceRange:
    min: Decimal
    max: Decimal
    currency: str = DEFAULT_CURRENCY


def quantize_money(value: Decimal, step: Decimal = CENT) -> Decimal:
    """Round to the cent (or ``step``), half up.

    Precision is widened to fit the value so very large amounts quantize
    instead of overflowing the default 28-digit context.
    """
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, value.adjusted() - step.as_tuple().exponent + 2)
        return value.quantize(step, rounding=ROUND_HALF_UP)


def to_decimal(value: Any) -> Decimal:
    """Coerce a price-like value to Decimal; anything unusable becomes 0."""
    if value is None or isinstance(value, bool):
        return Decimal("0")
    if isinstance(value, Decimal):
        return value if value.is_finite() else Decimal("0")
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        try:
            result = Decimal(str(value))
        except InvalidOperation:
            return Decimal("0")
        return result if result.is_finite() else Decimal("0")
    return PriceExtractor.extract_single_price(str(value))


class PriceExtractor:
    """Parse and format prices such as ``"₹1,299.50"`` or ``"₹100.00 - ₹200.00"``.

    Parsing never raises: text without a number yields ``Decimal("0")``, which
    callers must read as "no usable price" rather than as an error.
    """

    @staticmethod
    def extract_single_price(text: Any) -> Decimal:
        if not isinstance(text, str):
            if text is None:
                return Decimal("0")
            return to_decimal(text)
        match = _NUMBER_RE.search(_THOUSANDS_RE.sub("", text))
        if not match:
            return Decimal("0")
        return Decimal(match.group(0))

    @staticmethod
    def detect_currency(text: Any, default: str = DEFAULT_CURRENCY) -> str:
        if not isinstance(text, str):
            return default
        match = _CURRENCY_RE.search(text)
        return match.group(1) if match else default

    @staticmethod
    def format_price(value: Any, currency: str = DEFAULT_CURRENCY) -> str:
        return f"{currency}{quantize_money(to_decimal(value))}"

    @classmethod
    def extract_price_range(cls, text: Any) -> PriceRange:
        currency = cls.detect_currency(text)
        if not isinstance(text, str):
            value = to_decimal(text)
            return PriceRange(min=value, max=value, currency=currency)

        sides = [part for part in _RANGE_SEPARATOR_RE.split(text) if _NUMBER_RE.search(part)]
        if not sides:
            return PriceRange(min=Decimal("0"), max=Decimal("0"), currency=currency)

        low = cls.extract_single_price(sides[0])
        high = cls.extract_single_price(sides[1]) if len(sides) > 1 else low
        if low > high:
            low, high = high, low
        return PriceRange(min=low, max=high, currency=currency)

    @classmethod
    def format_price_range(cls, price_range: PriceRange) -> str:
        if price_range.min == price_range.max:
            return cls.format_price(price_range.min, price_range.currency)
        return (
            f"{cls.format_price(price_range.min, price_range.currency)}"
            f" - {cls.format_price(price_range.max, price_range.currency)}"
        )
