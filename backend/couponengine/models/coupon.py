"""Coupon lookup table consulted by the validation service."""

from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String, Text, func

from couponengine.core.database import Base
from couponengine.models.shared import UUIDType, generate_uuid


class CouponType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class CouponRecord(Base):
    """Stored coupon definition and its usage counter."""

    __tablename__ = "coupons"

    id = Column(UUIDType, primary_key=True, default=generate_uuid)
    code = Column(String(64), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)

    coupon_type = Column(String(20), nullable=False, default=CouponType.PERCENTAGE.value)
    discount_percent = Column(Numeric(5, 2), nullable=False)
    min_order_value = Column(Numeric(12, 2), nullable=True)
    max_discount = Column(Numeric(12, 2), nullable=True)

    is_active = Column(Boolean, nullable=False, default=True)
    expiry_date = Column(DateTime(timezone=True), nullable=True)

    used_count = Column(Integer, nullable=False, default=0)
    max_uses = Column(Integer, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
