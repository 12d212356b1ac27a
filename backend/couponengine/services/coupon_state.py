"""Lifecycle of the single active coupon of a browsing session."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import TypeAdapter, ValidationError

from couponengine.core import messages
from couponengine.core.config import settings
from couponengine.models.shared import utc_now
from couponengine.schemas.coupon import Coupon, CouponHistoryEntry, CouponValidationResponse
from couponengine.services.coupon_validator import check_eligibility
from couponengine.services.discount_calculator import (
    DiscountCalculationResult,
    DiscountCalculator,
    days_until_expiry,
    percent_label,
    usable_coupon,
)
from couponengine.services.key_value_store import InMemoryKeyValueStore, KeyValueStore
from couponengine.services.price_extractor import to_decimal
from couponengine.services.validation_client import CouponTransportError, ValidationBackend

logger = logging.getLogger(__name__)

ACTIVE_COUPON_KEY = "active_coupon"
COUPON_CODE_KEY = "coupon_code"
COUPON_HISTORY_KEY = "coupon_history"
RECENT_CODES_KEY = "recent_codes"

_history_adapter = TypeAdapter(list[CouponHistoryEntry])
_codes_adapter = TypeAdapter(list[str])


class CouponSessionStatus(str, Enum):
    IDLE = "idle"
    APPLYING = "applying"
    APPLIED = "applied"
    ERROR = "error"


@dataclass(frozen=True)
class CouponExpiryInfo:
    is_expired: bool
    days_left: int | None = None


class CouponState:
    """Holds at most one active coupon and the commands that change it.

    ``apply_coupon`` is the only suspending operation. Each call is numbered;
    a response that arrives after a newer call was issued (or after
    ``clear_coupon``) is dropped instead of overwriting newer state.

    A failed apply never touches the coupon that is already active: the
    status moves to ``ERROR`` and ``message`` explains why, but
    ``active_coupon`` keeps its previous value.
    """

    def __init__(
        self,
        backend: ValidationBackend,
        store: KeyValueStore | None = None,
        enable_persistence: bool = settings.COUPON_PERSISTENCE_ENABLED,
        max_history_size: int = settings.COUPON_HISTORY_SIZE,
        max_recent_codes: int = settings.COUPON_RECENT_CODES_SIZE,
        timeout: float = settings.COUPON_VALIDATION_TIMEOUT,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.backend = backend
        self.store: KeyValueStore = store if store is not None else InMemoryKeyValueStore()
        self.is_persistent = enable_persistence
        self.max_history_size = max_history_size
        self.max_recent_codes = max_recent_codes
        self.timeout = timeout
        self.clock = clock

        self.coupon_code = ""
        self.message = ""
        self.status = CouponSessionStatus.IDLE
        self._active_coupon: Coupon | None = None
        self._history: list[CouponHistoryEntry] = []
        self._recent_codes: list[str] = []
        self._request_seq = 0

        if self.is_persistent:
            self._rehydrate()

    # -- read side ---------------------------------------------------------

    @property
    def active_coupon(self) -> Coupon | None:
        return self._active_coupon

    @property
    def has_active_coupon(self) -> bool:
        return self._active_coupon is not None

    @property
    def is_applying(self) -> bool:
        return self.status == CouponSessionStatus.APPLYING

    @property
    def recent_codes(self) -> list[str]:
        """Codes applied this session, most recent first. Suggestions only."""
        return list(self._recent_codes)

    @property
    def history(self) -> list[CouponHistoryEntry]:
        return list(self._history)

    def is_coupon_valid(self, coupon: Coupon | None) -> bool:
        return usable_coupon(coupon, self.clock()) is not None

    def validate_coupon(
        self,
        coupon: Coupon,
        order_value: Any = 0,
    ) -> CouponValidationResponse:
        """Client-side pre-check with the same rules the server applies."""
        error = check_eligibility(coupon, to_decimal(order_value), self.clock())
        if error is not None:
            return CouponValidationResponse(is_valid=False, error=error)
        return CouponValidationResponse(is_valid=True, coupon=coupon)

    def get_coupon_discount(self, coupon: Coupon | None, price: Any) -> DiscountCalculationResult:
        return DiscountCalculator.apply_coupon_discount(price, coupon, self.clock())

    def get_discounted_price(self, coupon: Coupon | None, price: Any) -> Decimal:
        return self.get_coupon_discount(coupon, price).discounted_price

    def get_discount_display(self, coupon: Coupon | None) -> str:
        active = usable_coupon(coupon, self.clock())
        if active is None:
            return ""
        return DiscountCalculator.get_discount_badge(active.discount_percent)

    def format_coupon_message(self, coupon: Coupon) -> str:
        text = f"{coupon.code}: {percent_label(coupon.discount_percent)}% off"
        if coupon.description:
            text = f"{text} - {coupon.description}"
        return text

    def check_coupon_expiry(self, coupon: Coupon) -> CouponExpiryInfo:
        now = self.clock()
        days_left = days_until_expiry(coupon, now)
        if days_left is None:
            return CouponExpiryInfo(is_expired=False)
        return CouponExpiryInfo(is_expired=coupon.is_expired(now), days_left=days_left)

    # -- commands ----------------------------------------------------------

    def set_coupon_code(self, code: str) -> None:
        self.coupon_code = code
        if not self.is_persistent:
            return
        if code:
            self.store.set(COUPON_CODE_KEY, code)
        else:
            self.store.remove(COUPON_CODE_KEY)

    async def apply_coupon(self, code: str | None = None, order_value: Any = 0) -> bool:
        """Validate a code and make it the active coupon.

        Args:
            code: Code to apply; defaults to the code entered through
                ``set_coupon_code``.
            order_value: Order total sent along for the minimum-order rule.

        Returns:
            True if the coupon is now active, False otherwise (the reason is
            in ``message``).
        """
        if code is not None:
            self.set_coupon_code(code)
        submitted = self.coupon_code.strip()
        if not submitted:
            self._fail(messages.COUPON_EMPTY_INPUT)
            return False

        self._request_seq += 1
        request_id = self._request_seq
        self.status = CouponSessionStatus.APPLYING
        self.message = ""

        try:
            response = await asyncio.wait_for(
                self.backend.validate(submitted, max(to_decimal(order_value), Decimal("0"))),
                timeout=self.timeout,
            )
        except (CouponTransportError, TimeoutError) as exc:
            if self._is_stale(request_id, submitted):
                return False
            logger.warning("Coupon validation for %s failed: %r", submitted, exc)
            self._fail(messages.NETWORK_ERROR)
            return False

        if self._is_stale(request_id, submitted):
            return False

        if not response.is_valid or response.coupon is None:
            self._fail(response.error or messages.COUPON_INVALID)
            return False

        coupon = response.coupon
        if coupon.is_expired(self.clock()):
            self._fail(messages.COUPON_EXPIRED)
            return False

        self._activate(coupon)
        return True

    def clear_coupon(self) -> None:
        """Drop the active coupon and its persisted copy. Safe to call repeatedly."""
        # Responses still in flight must not resurrect the cleared coupon.
        self._request_seq += 1
        self._active_coupon = None
        self.coupon_code = ""
        self.message = ""
        self.status = CouponSessionStatus.IDLE
        if self.is_persistent:
            self.store.remove(ACTIVE_COUPON_KEY)
            self.store.remove(COUPON_CODE_KEY)

    def clear_history(self) -> None:
        self._history = []
        self._recent_codes = []
        if self.is_persistent:
            self.store.remove(COUPON_HISTORY_KEY)
            self.store.remove(RECENT_CODES_KEY)

    # -- internals ---------------------------------------------------------

    def _is_stale(self, request_id: int, code: str) -> bool:
        if request_id == self._request_seq:
            return False
        logger.info("Discarding stale validation response for %s", code)
        return True

    def _fail(self, message: str) -> None:
        self.message = message
        self.status = CouponSessionStatus.ERROR

    def _activate(self, coupon: Coupon) -> None:
        self._active_coupon = coupon
        self.coupon_code = coupon.code
        self.message = messages.coupon_applied_message(
            coupon.code, percent_label(coupon.discount_percent)
        )
        self.status = CouponSessionStatus.APPLIED

        self._recent_codes = [coupon.code] + [c for c in self._recent_codes if c != coupon.code]
        self._recent_codes = self._recent_codes[: self.max_recent_codes]

        entry = CouponHistoryEntry(coupon=coupon, used_at=self.clock())
        self._history = [entry] + [h for h in self._history if h.coupon.code != coupon.code]
        self._history = self._history[: self.max_history_size]

        if self.is_persistent:
            self.store.set(ACTIVE_COUPON_KEY, coupon.model_dump_json(by_alias=True))
            self.store.set(COUPON_CODE_KEY, coupon.code)
            self.store.set(
                COUPON_HISTORY_KEY,
                _history_adapter.dump_json(self._history, by_alias=True).decode("utf-8"),
            )
            self.store.set(
                RECENT_CODES_KEY,
                _codes_adapter.dump_json(self._recent_codes).decode("utf-8"),
            )
        logger.info("Coupon %s is now active", coupon.code)

    def _rehydrate(self) -> None:
        """Restore the persisted session.

        The stored coupon is schema-checked but not re-validated with the
        server; expiry is still enforced whenever a discount is computed.
        """
        raw_coupon = self.store.get(ACTIVE_COUPON_KEY)
        if raw_coupon:
            try:
                self._active_coupon = Coupon.model_validate_json(raw_coupon)
            except ValidationError:
                logger.warning("Ignoring unreadable persisted coupon")
                self.store.remove(ACTIVE_COUPON_KEY)

        stored_code = self.store.get(COUPON_CODE_KEY)
        if self._active_coupon is not None:
            # Wins over a code left behind by a later failed apply.
            self.coupon_code = self._active_coupon.code
            self.status = CouponSessionStatus.APPLIED
        elif stored_code:
            self.coupon_code = stored_code

        raw_history = self.store.get(COUPON_HISTORY_KEY)
        if raw_history:
            try:
                self._history = _history_adapter.validate_json(raw_history)
            except ValidationError:
                logger.warning("Ignoring unreadable coupon history")
                self.store.remove(COUPON_HISTORY_KEY)

        raw_codes = self.store.get(RECENT_CODES_KEY)
        if raw_codes:
            try:
                self._recent_codes = _codes_adapter.validate_json(raw_codes)
            except ValidationError:
                logger.warning("Ignoring unreadable recent coupon codes")
                self.store.remove(RECENT_CODES_KEY)
