"""
Payment gateways.

Both providers sit behind PaymentGateway so the payments endpoints never
branch on the provider. Gateway methods never raise for a declined or
failed call; they return a GatewayResult with ``success=False`` and the
provider's error code/message, and the caller decides the HTTP status.

- Stripe goes through the official SDK (PaymentIntents + Refunds).
- PayPal goes through its REST API with httpx. The payment token for
  PayPal is the id of an order the buyer already approved client-side.
"""
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import httpx
import stripe

from storefront_api.config import get_settings
from storefront_api.core.exceptions import InvalidInputError, ServiceNotConfigured
from storefront_api.utils.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()


@dataclass
class GatewayResult:
    success: bool
    transaction_id: Optional[str] = None
    status: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)


class PaymentGateway:
    """Interface implemented by each provider."""

    gateway_type = ""

    async def authorize(self, amount_cents: int, currency: str, token: str, metadata: dict) -> GatewayResult:
        raise NotImplementedError

    async def capture(self, transaction_id: str, amount_cents: int, currency: str) -> GatewayResult:
        raise NotImplementedError

    async def charge(self, amount_cents: int, currency: str, token: str, metadata: dict) -> GatewayResult:
        raise NotImplementedError

    async def refund(self, transaction_id: str, amount_cents: int, currency: str, reason: Optional[str] = None) -> GatewayResult:
        raise NotImplementedError


# ============================================================================
# STRIPE
# ============================================================================

class StripeGateway(PaymentGateway):
    gateway_type = "stripe"

    def __init__(self, api_key: str):
        self.api_key = api_key

    @staticmethod
    def _failure(e: "stripe.StripeError") -> GatewayResult:
        logger.warning(f"Stripe request failed: {e}")
        return GatewayResult(
            success=False,
            error_code=getattr(e, "code", None),
            error_message=getattr(e, "user_message", None) or str(e),
        )

    def _create_intent(self, amount_cents: int, currency: str, token: str, metadata: dict, capture_method: str):
        return stripe.PaymentIntent.create(
            amount=amount_cents,
            currency=currency.lower(),
            payment_method=token,
            capture_method=capture_method,
            confirm=True,
            automatic_payment_methods={"enabled": True, "allow_redirects": "never"},
            metadata={k: str(v) for k, v in metadata.items()},
            api_key=self.api_key,
        )

    async def authorize(self, amount_cents, currency, token, metadata):
        try:
            intent = self._create_intent(amount_cents, currency, token, metadata, "manual")
        except stripe.StripeError as e:
            return self._failure(e)
        return GatewayResult(
            success=intent.status == "requires_capture",
            transaction_id=intent.id,
            status=intent.status,
            error_message=None if intent.status == "requires_capture" else f"Unexpected status {intent.status}",
            raw={"id": intent.id, "status": intent.status},
        )

    async def capture(self, transaction_id, amount_cents, currency):
        try:
            intent = stripe.PaymentIntent.capture(
                transaction_id,
                amount_to_capture=amount_cents,
                api_key=self.api_key,
            )
        except stripe.StripeError as e:
            return self._failure(e)
        return GatewayResult(
            success=intent.status == "succeeded",
            transaction_id=intent.id,
            status=intent.status,
            raw={"id": intent.id, "status": intent.status},
        )

    async def charge(self, amount_cents, currency, token, metadata):
        try:
            intent = self._create_intent(amount_cents, currency, token, metadata, "automatic")
        except stripe.StripeError as e:
            return self._failure(e)
        return GatewayResult(
            success=intent.status == "succeeded",
            transaction_id=intent.id,
            status=intent.status,
            raw={"id": intent.id, "status": intent.status},
        )

    async def refund(self, transaction_id, amount_cents, currency, reason=None):
        try:
            refund = stripe.Refund.create(
                payment_intent=transaction_id,
                amount=amount_cents,
                metadata={"reason": reason or ""},
                api_key=self.api_key,
            )
        except stripe.StripeError as e:
            return self._failure(e)
        return GatewayResult(
            success=refund.status in ("succeeded", "pending"),
            transaction_id=refund.id,
            status=refund.status,
            raw={"id": refund.id, "status": refund.status},
        )


# ============================================================================
# PAYPAL
# ============================================================================

PAYPAL_BASE_URLS = {
    "sandbox": "https://api-m.sandbox.paypal.com",
    "live": "https://api-m.paypal.com",
}

PAYPAL_TIMEOUT = httpx.Timeout(30.0, connect=10.0)


def format_amount(amount_cents: int) -> str:
    """1999 -> '19.99' without going through floats."""
    return f"{amount_cents // 100}.{amount_cents % 100:02d}"


class PayPalGateway(PaymentGateway):
    gateway_type = "paypal"

    def __init__(self, client_id: str, client_secret: str, mode: str = "sandbox",
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_url = PAYPAL_BASE_URLS.get(mode, PAYPAL_BASE_URLS["sandbox"])
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=PAYPAL_TIMEOUT,
            transport=self._transport,
        )

    async def _access_token(self, client: httpx.AsyncClient) -> str:
        response = await client.post(
            "/v1/oauth2/token",
            data={"grant_type": "client_credentials"},
            auth=(self.client_id, self.client_secret),
        )
        response.raise_for_status()
        return response.json()["access_token"]

    async def _post(self, path: str, body: Optional[dict] = None) -> dict:
        async with self._client() as client:
            token = await self._access_token(client)
            response = await client.post(
                path,
                json=body or {},
                headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json"},
            )
            response.raise_for_status()
            return response.json()

    @staticmethod
    def _failure(e: httpx.HTTPError) -> GatewayResult:
        logger.warning(f"PayPal request failed: {e}")
        code = None
        message = str(e)
        if isinstance(e, httpx.HTTPStatusError):
            try:
                body = e.response.json()
            except ValueError:
                body = {}
            code = body.get("name") or str(e.response.status_code)
            message = body.get("message") or message
        return GatewayResult(success=False, error_code=code, error_message=message)

    @staticmethod
    def _first_payment(data: dict, kind: str) -> dict:
        units = data.get("purchase_units") or [{}]
        payments = units[0].get("payments", {}).get(kind) or [{}]
        return payments[0]

    async def authorize(self, amount_cents, currency, token, metadata):
        try:
            data = await self._post(f"/v2/checkout/orders/{token}/authorize")
        except httpx.HTTPError as e:
            return self._failure(e)
        authorization = self._first_payment(data, "authorizations")
        status = authorization.get("status")
        return GatewayResult(
            success=status == "CREATED",
            transaction_id=authorization.get("id"),
            status=status,
            raw={"order_id": data.get("id"), "status": status},
        )

    async def capture(self, transaction_id, amount_cents, currency):
        body = {
            "amount": {"currency_code": currency.upper(), "value": format_amount(amount_cents)},
            "final_capture": True,
        }
        try:
            data = await self._post(f"/v2/payments/authorizations/{transaction_id}/capture", body)
        except httpx.HTTPError as e:
            return self._failure(e)
        return GatewayResult(
            success=data.get("status") == "COMPLETED",
            transaction_id=data.get("id"),
            status=data.get("status"),
            raw={"id": data.get("id"), "status": data.get("status")},
        )

    async def charge(self, amount_cents, currency, token, metadata):
        try:
            data = await self._post(f"/v2/checkout/orders/{token}/capture")
        except httpx.HTTPError as e:
            return self._failure(e)
        capture = self._first_payment(data, "captures")
        status = capture.get("status")
        return GatewayResult(
            success=status == "COMPLETED",
            transaction_id=capture.get("id"),
            status=status,
            raw={"order_id": data.get("id"), "status": status},
        )

    async def refund(self, transaction_id, amount_cents, currency, reason=None):
        body = {
            "amount": {"currency_code": currency.upper(), "value": format_amount(amount_cents)},
            "note_to_payer": reason or "Refund",
        }
        try:
            data = await self._post(f"/v2/payments/captures/{transaction_id}/refund", body)
        except httpx.HTTPError as e:
            return self._failure(e)
        return GatewayResult(
            success=data.get("status") in ("COMPLETED", "PENDING"),
            transaction_id=data.get("id"),
            status=data.get("status"),
            raw={"id": data.get("id"), "status": data.get("status")},
        )


# ============================================================================
# FACTORY
# ============================================================================

def get_gateway(gateway_type: str) -> PaymentGateway:
    """Build a configured gateway or raise if credentials are missing."""
    if gateway_type == "stripe":
        if not settings.STRIPE_SECRET_KEY:
            raise ServiceNotConfigured("Stripe")
        return StripeGateway(settings.STRIPE_SECRET_KEY)

    if gateway_type == "paypal":
        if not (settings.PAYPAL_CLIENT_ID and settings.PAYPAL_CLIENT_SECRET):
            raise ServiceNotConfigured("PayPal")
        return PayPalGateway(settings.PAYPAL_CLIENT_ID, settings.PAYPAL_CLIENT_SECRET, settings.PAYPAL_MODE)

    raise InvalidInputError(f"Unsupported payment gateway: {gateway_type}")


def get_gateway_factory() -> Callable[[str], PaymentGateway]:
    """FastAPI dependency; overridden in tests to inject fake gateways."""
    return get_gateway
