from couponengine.models.coupon import CouponRecord, CouponType

__all__ = [
    "CouponRecord",
    "CouponType",
]
