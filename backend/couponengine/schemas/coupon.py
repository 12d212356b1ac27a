"""Coupon record and validation request/response schemas.

These models are the trust boundary: anything coming off the wire or out of
the session store is parsed here before the engine touches it. The wire form
is camelCase; snake_case field names are accepted too.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from couponengine.models.coupon import CouponType
from couponengine.models.shared import as_utc, utc_now


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Coupon(CamelModel):
    """A discount rule as the engine sees it."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        frozen=True,
    )

    code: str = Field(max_length=64)
    discount_percent: Decimal = Field(ge=0, le=100)
    coupon_type: CouponType = Field(default=CouponType.PERCENTAGE, alias="type")
    min_order_value: Decimal | None = Field(default=None, ge=0)
    max_discount: Decimal | None = Field(default=None, ge=0)
    is_active: bool = True
    expiry_date: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("expiryDate", "expiresAt", "expiry_date"),
        serialization_alias="expiryDate",
    )
    description: str | None = None
    used_count: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("usedCount", "currentUses", "used_count"),
        serialization_alias="usedCount",
    )
    max_uses: int | None = Field(default=None, ge=1)

    @field_validator("code", mode="before")
    @classmethod
    def normalize_code(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = value.strip().upper()
            if not value:
                raise ValueError("code must not be blank")
        return value

    @field_validator("expiry_date", mode="before")
    @classmethod
    def parse_expiry_date(cls, value: Any) -> Any:
        if value is None or value == "":
            return None
        if isinstance(value, str) and len(value) == 10:
            return as_utc(date.fromisoformat(value))
        if isinstance(value, date) and not isinstance(value, datetime):
            return as_utc(value)
        return value

    @field_validator("expiry_date")
    @classmethod
    def expiry_to_utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value) if value is not None else None

    @field_validator("max_uses", mode="before")
    @classmethod
    def zero_means_unlimited(cls, value: Any) -> Any:
        # Data files use 0 for "no cap".
        if value == 0:
            return None
        return value

    @field_validator("used_count", mode="before")
    @classmethod
    def none_used_count(cls, value: Any) -> Any:
        return 0 if value is None else value

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expiry_date is None:
            return False
        return self.expiry_date < as_utc(now or utc_now())

    @property
    def is_exhausted(self) -> bool:
        return self.max_uses is not None and self.used_count >= self.max_uses


class CouponValidationRequest(CamelModel):
    """Body of a validation call: ``{code, orderValue}``."""

    code: str = Field(default="", max_length=255)
    order_value: Decimal = Field(default=Decimal("0"), ge=0)


class CouponValidationResponse(CamelModel):
    """Result of a validation call: ``{isValid, coupon?, error?}``.

    Older endpoints answer ``{success, coupon}``; ``success`` is read as
    ``isValid``.
    """

    is_valid: bool = Field(
        validation_alias=AliasChoices("isValid", "success", "is_valid"),
        serialization_alias="isValid",
    )
    coupon: Coupon | None = None
    error: str | None = None

    @model_validator(mode="after")
    def check_consistency(self) -> "CouponValidationResponse":
        if self.is_valid and self.coupon is None:
            raise ValueError("a valid response must carry a coupon")
        if not self.is_valid and self.coupon is not None:
            self.coupon = None
        return self


# Server-side name for the same shape.
CouponValidationResult = CouponValidationResponse


class CouponHistoryEntry(CamelModel):
    """A coupon applied during the session and when it was applied."""

    coupon: Coupon
    used_at: datetime

    @field_validator("used_at")
    @classmethod
    def used_at_to_utc(cls, value: datetime) -> datetime:
        return as_utc(value)
