"""User-facing messages shared by the validator and the session state."""

from decimal import Decimal

COUPON_REQUIRED = "Coupon code is required"
COUPON_EMPTY_INPUT = "Please enter a coupon code"
COUPON_INVALID = "Invalid coupon code"
COUPON_EXPIRED = "Coupon has expired"
COUPON_MAX_USES = "Coupon usage limit reached"
NETWORK_ERROR = "Network error. Please check your connection."


def minimum_order_message(min_order_value: Decimal, currency: str = "₹") -> str:
    return f"Minimum order value of {currency}{min_order_value:.2f} required"


def coupon_applied_message(code: str, percent_label: str) -> str:
    return f"Coupon {code} applied! {percent_label}% discount active."
