"""Coupon repository for data access."""

from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.orm import Session

from couponengine.models.coupon import CouponRecord
from couponengine.schemas.coupon import Coupon


class CouponRepository:
    """Repository for CouponRecord model."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_code(self, code: str) -> CouponRecord | None:
        """Get a coupon by code; codes are stored uppercase."""
        normalized = code.strip().upper()
        return self.db.query(CouponRecord).filter(CouponRecord.code == normalized).first()

    def get_available(self, now: datetime) -> list[CouponRecord]:
        """Active, unexpired coupons that still have uses left."""
        query = self.db.query(CouponRecord).filter(
            CouponRecord.is_active.is_(True),
            or_(CouponRecord.expiry_date.is_(None), CouponRecord.expiry_date >= now),
            or_(
                CouponRecord.max_uses.is_(None),
                CouponRecord.used_count < CouponRecord.max_uses,
            ),
        )
        return query.order_by(CouponRecord.code).all()

    def create(self, data: Coupon) -> CouponRecord:
        """Create a new coupon."""
        record = CouponRecord(
            code=data.code,
            description=data.description,
            coupon_type=data.coupon_type.value,
            discount_percent=data.discount_percent,
            min_order_value=data.min_order_value,
            max_discount=data.max_discount,
            is_active=data.is_active,
            expiry_date=data.expiry_date,
            used_count=data.used_count,
            max_uses=data.max_uses,
        )
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record

    def upsert(self, data: Coupon) -> CouponRecord:
        """Create the coupon, or overwrite the stored definition with the same code."""
        record = self.get_by_code(data.code)
        if record is None:
            return self.create(data)

        record.description = data.description  # type: ignore[assignment]
        record.coupon_type = data.coupon_type.value  # type: ignore[assignment]
        record.discount_percent = data.discount_percent  # type: ignore[assignment]
        record.min_order_value = data.min_order_value  # type: ignore[assignment]
        record.max_discount = data.max_discount  # type: ignore[assignment]
        record.is_active = data.is_active  # type: ignore[assignment]
        record.expiry_date = data.expiry_date  # type: ignore[assignment]
        record.used_count = data.used_count  # type: ignore[assignment]
        record.max_uses = data.max_uses  # type: ignore[assignment]
        self.db.commit()
        self.db.refresh(record)
        return record

    def increment_usage(self, record: CouponRecord) -> CouponRecord | None:
        """Count one more redemption, unless the usage cap is already reached.

        The cap check and the increment are one UPDATE, so concurrent
        redemptions cannot push ``used_count`` past ``max_uses``. Returns None
        when no use was left.
        """
        updated = (
            self.db.query(CouponRecord)
            .filter(
                CouponRecord.id == record.id,
                or_(
                    CouponRecord.max_uses.is_(None),
                    CouponRecord.used_count < CouponRecord.max_uses,
                ),
            )
            .update(
                {CouponRecord.used_count: CouponRecord.used_count + 1},
                synchronize_session=False,
            )
        )
        self.db.commit()
        if not updated:
            return None
        self.db.refresh(record)
        return record
