"""Backends the session state uses to validate a coupon code."""

import logging
from collections.abc import Callable
from contextlib import AbstractContextManager
from decimal import Decimal
from typing import Protocol

import httpx
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from couponengine.core import messages
from couponengine.core.config import settings
from couponengine.core.database import session_scope
from couponengine.schemas.coupon import CouponValidationRequest, CouponValidationResponse
from couponengine.services.coupon_validator import CouponValidator

logger = logging.getLogger(__name__)


class CouponTransportError(Exception):
    """The validation service could not be reached or answered nonsense."""


class ValidationBackend(Protocol):
    async def validate(self, code: str, order_value: Decimal) -> CouponValidationResponse: ...


class HttpValidationBackend:
    """Validates codes by POSTing ``{code, orderValue}`` to the validation endpoint.

    4xx answers carrying an ``error`` are treated as rejections; 5xx answers,
    connection problems and bodies that do not parse raise
    ``CouponTransportError``.
    """

    def __init__(
        self,
        url: str = settings.COUPON_VALIDATION_URL,
        timeout: float = settings.COUPON_VALIDATION_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ):
        self.url = url
        self.timeout = timeout
        self.client = client

    async def validate(self, code: str, order_value: Decimal) -> CouponValidationResponse:
        try:
            request = CouponValidationRequest(code=code, order_value=order_value)
        except ValidationError:
            return CouponValidationResponse(is_valid=False, error=messages.COUPON_INVALID)

        payload = request.model_dump(mode="json", by_alias=True)
        try:
            if self.client is not None:
                resp = await self.client.post(self.url, json=payload, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    resp = await client.post(self.url, json=payload)
        except httpx.HTTPError as exc:
            logger.warning("Coupon validation request to %s failed: %s", self.url, exc)
            raise CouponTransportError(str(exc)) from exc

        if resp.status_code >= 500:
            logger.warning("Coupon validation service returned %s", resp.status_code)
            raise CouponTransportError(f"Validation service returned {resp.status_code}")

        try:
            body = resp.json()
        except ValueError as exc:
            raise CouponTransportError("Validation service returned a non-JSON body") from exc
        if not isinstance(body, dict):
            raise CouponTransportError("Validation service returned an unexpected body")

        if resp.status_code >= 400 and "isValid" not in body and "success" not in body:
            error = body.get("error")
            if not isinstance(error, str) or not error.strip():
                error = messages.COUPON_INVALID
            return CouponValidationResponse(is_valid=False, error=error)

        try:
            return CouponValidationResponse.model_validate(body)
        except ValidationError as exc:
            logger.warning("Discarding malformed validation response: %s", exc)
            raise CouponTransportError("Malformed validation response") from exc


class LocalValidationBackend:
    """Runs the validator in-process against the coupon table."""

    def __init__(
        self,
        session_factory: Callable[[], AbstractContextManager[Session]] = session_scope,
        redeem: bool = True,
    ):
        self.session_factory = session_factory
        self.redeem = redeem

    async def validate(self, code: str, order_value: Decimal) -> CouponValidationResponse:
        try:
            with self.session_factory() as db:
                validator = CouponValidator(db)
                if self.redeem:
                    return validator.redeem(code, order_value)
                return validator.validate(code, order_value)
        except SQLAlchemyError as exc:
            logger.warning("Coupon lookup failed: %s", exc)
            raise CouponTransportError("Coupon store unavailable") from exc
