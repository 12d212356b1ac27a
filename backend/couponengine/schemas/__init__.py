from couponengine.schemas.coupon import (
    Coupon,
    CouponHistoryEntry,
    CouponValidationRequest,
    CouponValidationResponse,
    CouponValidationResult,
)

__all__ = [
    "Coupon",
    "CouponHistoryEntry",
    "CouponValidationRequest",
    "CouponValidationResponse",
    "CouponValidationResult",
]
