"""Tests for the Stripe and PayPal gateway adapters."""

import json
from types import SimpleNamespace
from unittest.mock import patch

import httpx
import pytest
import stripe

from storefront_api.core.exceptions import InvalidInputError, ServiceNotConfigured
from storefront_api.services.gateways import PayPalGateway, StripeGateway, format_amount, get_gateway


class TestStripeGateway:
    """PaymentIntents and Refunds through the SDK."""

    async def test_authorize_uses_manual_capture(self):
        intent = SimpleNamespace(id="pi_1", status="requires_capture")
        with patch.object(stripe.PaymentIntent, "create", return_value=intent) as create:
            result = await StripeGateway("sk_test_dummy").authorize(1999, "USD", "pm_card_visa", {"order_id": 7})

        assert result.success is True
        assert result.transaction_id == "pi_1"
        kwargs = create.call_args.kwargs
        assert kwargs["capture_method"] == "manual"
        assert kwargs["currency"] == "usd"
        assert kwargs["metadata"] == {"order_id": "7"}

    async def test_card_error_becomes_failed_result(self):
        error = stripe.CardError("Your card was declined.", param=None, code="card_declined")
        with patch.object(stripe.PaymentIntent, "create", side_effect=error):
            result = await StripeGateway("sk_test_dummy").charge(500, "usd", "pm_card_chargeDeclined", {})

        assert result.success is False
        assert result.error_code == "card_declined"
        assert "declined" in result.error_message

    async def test_refund(self):
        refund = SimpleNamespace(id="re_1", status="pending")
        with patch.object(stripe.Refund, "create", return_value=refund) as create:
            result = await StripeGateway("sk_test_dummy").refund("pi_1", 250, "usd", "Damaged")

        assert result.success is True
        assert create.call_args.kwargs["amount"] == 250
        assert create.call_args.kwargs["payment_intent"] == "pi_1"


def _paypal(handler):
    return PayPalGateway("client", "secret", "sandbox", transport=httpx.MockTransport(handler))


class TestPayPalGateway:
    """REST calls over httpx."""

    async def test_capture_sends_decimal_amount(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/v1/oauth2/token":
                return httpx.Response(200, json={"access_token": "tok"})
            seen["path"] = request.url.path
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"id": "CAP-1", "status": "COMPLETED"})

        result = await _paypal(handler).capture("AUTH-1", 1999, "usd")

        assert result.success is True
        assert result.transaction_id == "CAP-1"
        assert seen["path"] == "/v2/payments/authorizations/AUTH-1/capture"
        assert seen["auth"] == "Bearer tok"
        assert seen["body"]["amount"] == {"currency_code": "USD", "value": "19.99"}

    async def test_charge_reads_first_capture(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/v1/oauth2/token":
                return httpx.Response(200, json={"access_token": "tok"})
            return httpx.Response(201, json={
                "id": "ORDER-1",
                "purchase_units": [{"payments": {"captures": [{"id": "CAP-9", "status": "COMPLETED"}]}}],
            })

        result = await _paypal(handler).charge(1000, "USD", "ORDER-1", {})

        assert result.success is True
        assert result.transaction_id == "CAP-9"

    async def test_http_error_becomes_failed_result(self):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/v1/oauth2/token":
                return httpx.Response(200, json={"access_token": "tok"})
            return httpx.Response(422, json={"name": "UNPROCESSABLE_ENTITY", "message": "Authorization expired"})

        result = await _paypal(handler).capture("AUTH-1", 100, "USD")

        assert result.success is False
        assert result.error_code == "UNPROCESSABLE_ENTITY"
        assert result.error_message == "Authorization expired"


class TestGatewayFactory:
    """Configuration checks."""

    def test_format_amount(self):
        assert format_amount(1999) == "19.99"
        assert format_amount(5) == "0.05"

    def test_stripe_configured(self):
        assert isinstance(get_gateway("stripe"), StripeGateway)

    def test_paypal_not_configured(self):
        with pytest.raises(ServiceNotConfigured):
            get_gateway("paypal")

    def test_unknown_gateway(self):
        with pytest.raises(InvalidInputError):
            get_gateway("bitcoin")
