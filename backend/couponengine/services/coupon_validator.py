"""Authoritative coupon eligibility checks, run on the server side."""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.orm import Session

from couponengine.core import messages
from couponengine.models.shared import as_utc, utc_now
from couponengine.repositories.coupon_repository import CouponRepository
from couponengine.schemas.coupon import Coupon, CouponValidationResult
from couponengine.services.price_extractor import DEFAULT_CURRENCY, to_decimal

logger = logging.getLogger(__name__)


def check_eligibility(
    coupon: Coupon,
    order_value: Decimal,
    now: datetime,
) -> str | None:
    """Return the first rule the coupon fails for this order, or None.

    Rules run in a fixed order and stop at the first failure: active flag,
    expiry, minimum order value, usage cap.
    """
    if not coupon.is_active:
        # Same message as an unknown code so inactive codes are not revealed.
        return messages.COUPON_INVALID
    if coupon.is_expired(now):
        return messages.COUPON_EXPIRED
    if coupon.min_order_value is not None and order_value < coupon.min_order_value:
        return messages.minimum_order_message(coupon.min_order_value, DEFAULT_CURRENCY)
    if coupon.is_exhausted:
        return messages.COUPON_MAX_USES
    return None


class CouponValidator:
    """Validates submitted codes against the stored coupons."""

    def __init__(self, db: Session):
        self.db = db
        self.coupon_repo = CouponRepository(db)

    def validate(
        self,
        code: str,
        order_value: Any = 0,
        now: datetime | None = None,
    ) -> CouponValidationResult:
        """Check whether ``code`` can be used on an order of ``order_value``.

        Args:
            code: Code as typed by the shopper; whitespace and case are ignored.
            order_value: Order total the coupon would apply to.
            now: Reference time for the expiry check, defaults to now (UTC).

        Returns:
            CouponValidationResult with either the coupon or the first error.
        """
        result, _ = self._evaluate(code, order_value, now)
        return result

    def redeem(
        self,
        code: str,
        order_value: Any = 0,
        now: datetime | None = None,
    ) -> CouponValidationResult:
        """Validate ``code`` and, if it passes, count one use against it."""
        result, record = self._evaluate(code, order_value, now)
        if not result.is_valid or record is None:
            return result

        updated = self.coupon_repo.increment_usage(record)
        if updated is None:
            # Another redemption took the last use after the check above.
            logger.info("Coupon %s reached its usage cap while redeeming", record.code)
            return CouponValidationResult(is_valid=False, error=messages.COUPON_MAX_USES)

        coupon = Coupon.model_validate(updated)
        logger.info("Coupon %s redeemed (%d uses)", coupon.code, coupon.used_count)
        return CouponValidationResult(is_valid=True, coupon=coupon)

    def list_available(self, now: datetime | None = None) -> list[Coupon]:
        """Coupons a shopper could apply right now."""
        records = self.coupon_repo.get_available(as_utc(now or utc_now()))
        return [Coupon.model_validate(record) for record in records]

    def _evaluate(
        self,
        code: str,
        order_value: Any,
        now: datetime | None,
    ) -> tuple[CouponValidationResult, Any]:
        if not code or not code.strip():
            return CouponValidationResult(is_valid=False, error=messages.COUPON_REQUIRED), None

        record = self.coupon_repo.get_by_code(code)
        if record is None:
            logger.debug("Rejected unknown coupon code %r", code)
            return CouponValidationResult(is_valid=False, error=messages.COUPON_INVALID), None

        coupon = Coupon.model_validate(record)
        error = check_eligibility(coupon, to_decimal(order_value), as_utc(now or utc_now()))
        if error is not None:
            logger.debug("Rejected coupon %s: %s", coupon.code, error)
            return CouponValidationResult(is_valid=False, error=error), record

        return CouponValidationResult(is_valid=True, coupon=coupon), record
