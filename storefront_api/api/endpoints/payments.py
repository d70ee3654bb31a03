"""
Payment Endpoints

Authorize / capture / charge / refund against an order through Stripe or
PayPal. Every gateway call is made before touching the database; the
resulting payment row, order status and history entries are then written
in one commit.
"""
from datetime import datetime, timedelta
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import Callable, List

from storefront_api.database import get_db
from storefront_api.models import User, Tenant, Order, Payment
from storefront_api.schemas.order import PaymentRequest, CaptureRequest, RefundRequest, PaymentResponse
from storefront_api.api.deps import get_current_user, get_current_tenant, require_admin, require_member
from storefront_api.api.endpoints.orders import get_tenant_order
from storefront_api.core.exceptions import InvalidInputError, PaymentGatewayError, PaymentNotFoundError
from storefront_api.services.fees import calculate_fees
from storefront_api.services.gateways import GatewayResult, PaymentGateway, get_gateway_factory
from storefront_api.services.orders import TERMINAL_STATUSES, record_status_change, transition_order_status
from storefront_api.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])

AUTHORIZATION_TTL = timedelta(days=7)
REFUNDABLE_STATUSES = ("paid", "partially_refunded")


def get_tenant_payment(db: Session, tenant_id: str, payment_id: str) -> Payment:
    payment = db.query(Payment).filter(
        Payment.id == payment_id,
        Payment.tenant_id == tenant_id
    ).first()
    if not payment:
        raise PaymentNotFoundError(payment_id)
    return payment


def _payable_order(db: Session, tenant_id: str, order_id: str) -> Order:
    order = get_tenant_order(db, tenant_id, order_id)
    if order.order_status in TERMINAL_STATUSES:
        raise InvalidInputError({
            "error": "order_not_payable",
            "message": f"Order is {order.order_status}",
        })
    if order.payment_status == "paid":
        raise InvalidInputError({"error": "order_already_paid", "message": "Order is already paid"})
    return order


def _set_payment_status(order: Order, new_status: str, user_id: str, reason: str) -> None:
    if order.payment_status != new_status:
        record_status_change(order, "payment", order.payment_status, new_status, changed_by=user_id, reason=reason)
        order.payment_status = new_status


def _new_payment(
    tenant: Tenant,
    order: Order,
    payment_data: PaymentRequest,
    amount_cents: int,
    result: GatewayResult,
) -> Payment:
    fees = calculate_fees(amount_cents, payment_data.gateway_type, tenant.subscription_tier)
    return Payment(
        tenant_id=tenant.id,
        order_id=order.id,
        gateway_type=payment_data.gateway_type,
        gateway_transaction_id=result.transaction_id,
        payment_method=payment_data.payment_method.type,
        amount_cents=amount_cents,
        currency=order.currency,
        gateway_fee_cents=fees.gateway_fee_cents,
        platform_fee_cents=fees.platform_fee_cents,
        platform_fee_percent=str(fees.platform_fee_percent),
        fee_waived_reason=fees.fee_waived_reason,
        net_amount_cents=fees.net_amount_cents,
        gateway_response=result.raw,
    )


def _record_failure(db: Session, payment: Payment, result: GatewayResult) -> None:
    """Persist the failed attempt, then surface the gateway error."""
    payment.payment_status = "failed"
    payment.failure_code = result.error_code
    payment.failure_message = result.error_message
    db.add(payment)
    db.commit()

    logger.warning(f"Payment failed on {payment.gateway_type} for order {payment.order_id}: {result.error_message}")

    raise PaymentGatewayError(payment.gateway_type, result.error_message or "Payment failed", result.error_code)


@router.post("/authorize", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def authorize_payment(
    payment_data: PaymentRequest,
    current_user: User = Depends(require_member),
    tenant: Tenant = Depends(get_current_tenant),
    gateway_factory: Callable[[str], PaymentGateway] = Depends(get_gateway_factory),
    db: Session = Depends(get_db)
):
    """Place a hold on the buyer's funds; capture within seven days."""
    order = _payable_order(db, tenant.id, payment_data.order_id)
    amount = payment_data.amount_cents or order.total_cents
    gateway = gateway_factory(payment_data.gateway_type)

    result = await gateway.authorize(
        amount, order.currency, payment_data.payment_method.token,
        {"order_id": order.id, "order_number": order.order_number, "tenant_id": tenant.id}
    )

    payment = _new_payment(tenant, order, payment_data, amount, result)
    if not result.success:
        _record_failure(db, payment, result)

    now = datetime.utcnow()
    payment.payment_status = "authorized"
    payment.authorized_at = now
    payment.authorization_expires_at = now + AUTHORIZATION_TTL
    db.add(payment)
    _set_payment_status(order, "authorized", current_user.id, f"Authorized via {gateway.gateway_type}")
    db.commit()
    db.refresh(payment)

    logger.info(f"Payment authorized: {payment.id} ({amount} cents) for order {order.order_number}")

    return payment


@router.post("/{payment_id}/capture", response_model=PaymentResponse)
async def capture_payment(
    payment_id: str,
    capture_data: CaptureRequest,
    current_user: User = Depends(require_member),
    tenant: Tenant = Depends(get_current_tenant),
    gateway_factory: Callable[[str], PaymentGateway] = Depends(get_gateway_factory),
    db: Session = Depends(get_db)
):
    payment = get_tenant_payment(db, tenant.id, payment_id)
    if payment.payment_status != "authorized":
        raise InvalidInputError({
            "error": "not_authorized",
            "message": f"Payment is {payment.payment_status}, only authorized payments can be captured",
        })

    now = datetime.utcnow()
    if payment.authorization_expires_at and payment.authorization_expires_at <= now:
        raise InvalidInputError({
            "error": "authorization_expired",
            "message": "The authorization has expired",
            "expired_at": payment.authorization_expires_at.isoformat(),
        })

    amount = capture_data.amount_cents or payment.amount_cents
    if amount > payment.amount_cents:
        raise InvalidInputError({
            "error": "amount_exceeds_authorization",
            "message": f"Cannot capture {amount} of an authorization for {payment.amount_cents}",
        })

    gateway = gateway_factory(payment.gateway_type)
    result = await gateway.capture(payment.gateway_transaction_id, amount, payment.currency)
    if not result.success:
        logger.warning(f"Capture failed for payment {payment.id}: {result.error_message}")
        raise PaymentGatewayError(payment.gateway_type, result.error_message or "Capture failed", result.error_code)

    fees = calculate_fees(amount, payment.gateway_type, tenant.subscription_tier)
    order = get_tenant_order(db, tenant.id, payment.order_id)

    payment.amount_cents = amount
    payment.gateway_fee_cents = fees.gateway_fee_cents
    payment.platform_fee_cents = fees.platform_fee_cents
    payment.net_amount_cents = fees.net_amount_cents
    payment.payment_status = "paid"
    payment.captured_at = now
    _set_payment_status(order, "paid", current_user.id, "Payment captured")
    if order.order_status not in TERMINAL_STATUSES:
        transition_order_status(order, "paid", changed_by=current_user.id, reason="Payment captured", now=now)
    db.commit()
    db.refresh(payment)

    logger.info(f"Payment captured: {payment.id} ({amount} cents)")

    return payment


@router.post("/charge", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def charge_payment(
    payment_data: PaymentRequest,
    current_user: User = Depends(require_member),
    tenant: Tenant = Depends(get_current_tenant),
    gateway_factory: Callable[[str], PaymentGateway] = Depends(get_gateway_factory),
    db: Session = Depends(get_db)
):
    """Authorize and capture in one step."""
    order = _payable_order(db, tenant.id, payment_data.order_id)
    amount = payment_data.amount_cents or order.total_cents
    gateway = gateway_factory(payment_data.gateway_type)

    result = await gateway.charge(
        amount, order.currency, payment_data.payment_method.token,
        {"order_id": order.id, "order_number": order.order_number, "tenant_id": tenant.id}
    )

    payment = _new_payment(tenant, order, payment_data, amount, result)
    if not result.success:
        _record_failure(db, payment, result)

    now = datetime.utcnow()
    payment.payment_status = "paid"
    payment.captured_at = now
    db.add(payment)
    _set_payment_status(order, "paid", current_user.id, f"Charged via {gateway.gateway_type}")
    transition_order_status(order, "paid", changed_by=current_user.id, reason="Payment charged", now=now)
    db.commit()
    db.refresh(payment)

    logger.info(f"Payment charged: {payment.id} ({amount} cents) for order {order.order_number}")

    return payment


@router.post("/{payment_id}/refund", response_model=PaymentResponse)
async def refund_payment(
    payment_id: str,
    refund_data: RefundRequest,
    current_user: User = Depends(require_admin),
    tenant: Tenant = Depends(get_current_tenant),
    gateway_factory: Callable[[str], PaymentGateway] = Depends(get_gateway_factory),
    db: Session = Depends(get_db)
):
    """
    Refund all or part of a captured payment.

    The refund goes to the gateway first. Only when it succeeds are the
    payment, the order and their history updated, together.
    """
    payment = get_tenant_payment(db, tenant.id, payment_id)
    if payment.payment_status not in REFUNDABLE_STATUSES:
        raise InvalidInputError({
            "error": "not_refundable",
            "message": f"Payment is {payment.payment_status}",
        })

    remaining = payment.refundable_cents
    amount = refund_data.amount_cents or remaining
    if amount > remaining:
        raise InvalidInputError({
            "error": "amount_exceeds_refundable",
            "message": f"Cannot refund {amount}; {remaining} remains refundable",
            "refundable_cents": remaining,
        })

    gateway = gateway_factory(payment.gateway_type)
    result = await gateway.refund(payment.gateway_transaction_id, amount, payment.currency, refund_data.reason)
    if not result.success:
        logger.warning(f"Refund failed for payment {payment.id}: {result.error_message}")
        raise PaymentGatewayError(payment.gateway_type, result.error_message or "Refund failed", result.error_code)

    order = get_tenant_order(db, tenant.id, payment.order_id)
    fully_refunded = amount == remaining
    new_status = "refunded" if fully_refunded else "partially_refunded"

    payment.refunded_cents = (payment.refunded_cents or 0) + amount
    payment.refunded_at = datetime.utcnow()
    payment.payment_status = new_status
    _set_payment_status(order, new_status, current_user.id, refund_data.reason or "Refund issued")
    if fully_refunded and order.order_status != "refunded":
        transition_order_status(order, "refunded", changed_by=current_user.id, reason=refund_data.reason)
    db.commit()
    db.refresh(payment)

    logger.info(f"Refund issued: {amount} cents on payment {payment.id} by {current_user.id}")

    return payment


@router.get("/order/{order_id}", response_model=List[PaymentResponse])
async def list_order_payments(
    order_id: str,
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    order = get_tenant_order(db, tenant.id, order_id)
    return db.query(Payment).filter(
        Payment.order_id == order.id,
        Payment.tenant_id == tenant.id
    ).order_by(Payment.created_at.asc()).all()


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(
    payment_id: str,
    current_user: User = Depends(get_current_user),
    tenant: Tenant = Depends(get_current_tenant),
    db: Session = Depends(get_db)
):
    return get_tenant_payment(db, tenant.id, payment_id)
