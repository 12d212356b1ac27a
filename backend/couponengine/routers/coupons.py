"""Coupon validation API endpoints."""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from couponengine.core.database import get_db
from couponengine.schemas.coupon import (
    Coupon,
    CouponValidationRequest,
    CouponValidationResponse,
)
from couponengine.services.coupon_validator import CouponValidator

router = APIRouter()


@router.post(
    "/validate",
    response_model=CouponValidationResponse,
    response_model_exclude_none=True,
    summary="Validate coupon code",
    responses={422: {"description": "Validation error"}},
)
async def validate_coupon(
    data: CouponValidationRequest,
    db: Session = Depends(get_db),
) -> CouponValidationResponse:
    """Check a code against an order value and count the use when it passes.

    Rejections are answered with 200 and ``isValid: false`` plus the reason.
    """
    return CouponValidator(db).redeem(data.code, data.order_value)


@router.get(
    "/",
    response_model=list[Coupon],
    summary="List available coupons",
)
async def list_coupons(
    response: Response,
    db: Session = Depends(get_db),
) -> list[Coupon]:
    """List active, unexpired coupons that still have uses left."""
    coupons = CouponValidator(db).list_available()
    response.headers["X-Total-Count"] = str(len(coupons))
    return coupons
