"""Tests for the HTTP and in-process validation backends."""

import json
from contextlib import contextmanager
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from sqlalchemy.exc import OperationalError

from couponengine.core import messages
from couponengine.services.validation_client import (
    CouponTransportError,
    HttpValidationBackend,
    LocalValidationBackend,
)

URL = "https://shop.example.com/api/coupons/validate"

VALID_BODY = {
    "isValid": True,
    "coupon": {"code": "SAVE10", "discountPercent": 10, "isActive": True},
}


def make_backend(handler) -> tuple[HttpValidationBackend, list[httpx.Request]]:
    """Backend whose client answers every request with ``handler``."""
    seen: list[httpx.Request] = []

    def record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(record))
    return HttpValidationBackend(url=URL, timeout=2.0, client=client), seen


class TestHttpValidationBackend:
    @pytest.mark.asyncio
    async def test_posts_camel_case_body(self):
        backend, seen = make_backend(lambda request: httpx.Response(200, json=VALID_BODY))
        result = await backend.validate("save10", Decimal("250.50"))

        assert result.is_valid is True
        assert result.coupon.code == "SAVE10"
        assert len(seen) == 1
        assert seen[0].method == "POST"
        assert str(seen[0].url) == URL
        assert json.loads(seen[0].content) == {"code": "save10", "orderValue": "250.50"}

    @pytest.mark.asyncio
    async def test_rejection_body(self):
        backend, _ = make_backend(
            lambda request: httpx.Response(
                200, json={"isValid": False, "error": messages.COUPON_EXPIRED}
            )
        )
        result = await backend.validate("OLD", Decimal("0"))
        assert result.is_valid is False
        assert result.error == messages.COUPON_EXPIRED

    @pytest.mark.asyncio
    async def test_legacy_success_field(self):
        body = {"success": True, "coupon": {"code": "SAVE10", "discountPercent": 10}}
        backend, _ = make_backend(lambda request: httpx.Response(200, json=body))
        result = await backend.validate("SAVE10", Decimal("0"))
        assert result.is_valid is True

    @pytest.mark.asyncio
    async def test_legacy_expires_at_field(self):
        body = {
            "success": True,
            "coupon": {
                "code": "SAVE10",
                "discountPercent": 10,
                "expiresAt": "2030-01-31",
                "currentUses": 4,
            },
        }
        backend, _ = make_backend(lambda request: httpx.Response(200, json=body))
        coupon = (await backend.validate("SAVE10", Decimal("0"))).coupon
        assert coupon.expiry_date.year == 2030
        assert coupon.used_count == 4

    @pytest.mark.asyncio
    async def test_client_error_with_message_is_rejection(self):
        backend, _ = make_backend(
            lambda request: httpx.Response(404, json={"error": "Invalid coupon code"})
        )
        result = await backend.validate("NOPE", Decimal("0"))
        assert result.is_valid is False
        assert result.error == "Invalid coupon code"

    @pytest.mark.asyncio
    async def test_client_error_without_message(self):
        backend, _ = make_backend(lambda request: httpx.Response(400, json={}))
        result = await backend.validate("NOPE", Decimal("0"))
        assert result.error == messages.COUPON_INVALID

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error", [123, ["Invalid"], "  ", None])
    async def test_client_error_with_unusable_message(self, error):
        backend, _ = make_backend(lambda request: httpx.Response(404, json={"error": error}))
        result = await backend.validate("NOPE", Decimal("0"))
        assert result.is_valid is False
        assert result.error == messages.COUPON_INVALID

    @pytest.mark.asyncio
    async def test_server_error_raises(self):
        backend, _ = make_backend(lambda request: httpx.Response(503, json={"error": "down"}))
        with pytest.raises(CouponTransportError):
            await backend.validate("SAVE10", Decimal("0"))

    @pytest.mark.asyncio
    async def test_connection_error_raises(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        backend, _ = make_backend(refuse)
        with pytest.raises(CouponTransportError):
            await backend.validate("SAVE10", Decimal("0"))

    @pytest.mark.asyncio
    async def test_non_json_body_raises(self):
        backend, _ = make_backend(lambda request: httpx.Response(200, text="<html>oops</html>"))
        with pytest.raises(CouponTransportError):
            await backend.validate("SAVE10", Decimal("0"))

    @pytest.mark.asyncio
    async def test_list_body_raises(self):
        backend, _ = make_backend(lambda request: httpx.Response(200, json=[1, 2]))
        with pytest.raises(CouponTransportError):
            await backend.validate("SAVE10", Decimal("0"))

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            {"isValid": True},
            {"isValid": True, "coupon": {"code": "SAVE10", "discountPercent": 150}},
            {"isValid": True, "coupon": {"code": "   ", "discountPercent": 10}},
            {"coupon": {"code": "SAVE10", "discountPercent": 10}},
        ],
    )
    async def test_malformed_body_raises(self, body):
        backend, _ = make_backend(lambda request: httpx.Response(200, json=body))
        with pytest.raises(CouponTransportError):
            await backend.validate("SAVE10", Decimal("0"))

    @pytest.mark.asyncio
    async def test_oversized_code_is_rejected_without_request(self):
        backend, seen = make_backend(lambda request: httpx.Response(200, json=VALID_BODY))
        result = await backend.validate("X" * 300, Decimal("0"))
        assert result.is_valid is False
        assert result.error == messages.COUPON_INVALID
        assert seen == []

    @pytest.mark.asyncio
    async def test_creates_own_client_when_none_given(self):
        mock_response = httpx.Response(
            200, json=VALID_BODY, request=httpx.Request("POST", URL)
        )
        with patch("couponengine.services.validation_client.httpx.AsyncClient") as mock_cls:
            mock_client = mock_cls.return_value.__aenter__.return_value
            mock_client.post = AsyncMock(return_value=mock_response)
            backend = HttpValidationBackend(url=URL, timeout=3.0)
            result = await backend.validate("SAVE10", Decimal("1"))

        assert result.is_valid is True
        mock_cls.assert_called_once_with(timeout=3.0)
        mock_client.post.assert_called_once_with(URL, json={"code": "SAVE10", "orderValue": "1"})


class TestLocalValidationBackend:
    @pytest.mark.asyncio
    async def test_redeems_against_table(self, stored_coupons):
        backend = LocalValidationBackend()
        result = await backend.validate("LASTONE", Decimal("10"))
        assert result.is_valid is True
        assert result.coupon.used_count == 1

        again = await backend.validate("LASTONE", Decimal("10"))
        assert again.error == messages.COUPON_MAX_USES

    @pytest.mark.asyncio
    async def test_validate_only_mode(self, stored_coupons):
        backend = LocalValidationBackend(redeem=False)
        await backend.validate("LASTONE", Decimal("10"))
        result = await backend.validate("LASTONE", Decimal("10"))
        assert result.is_valid is True

    @pytest.mark.asyncio
    async def test_database_error_becomes_transport_error(self):
        db = MagicMock()
        db.query.side_effect = OperationalError("SELECT", {}, Exception("db gone"))

        @contextmanager
        def broken_session():
            yield db

        backend = LocalValidationBackend(session_factory=broken_session)
        with pytest.raises(CouponTransportError):
            await backend.validate("SAVE10", Decimal("0"))
