"""
Stripe webhook event handling.

Events arrive as plain dicts (the verified request body). Each handler
performs one conditional update on the tenant's billing columns.
Processed event ids are stored in stripe_webhook_events; a redelivered
event is acknowledged without running its handler again.
"""
from datetime import datetime
from typing import Callable, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront_api.core.tiers import normalize_billable_tier
from storefront_api.models import StripeWebhookEvent, Tenant
from storefront_api.utils.logging import get_logger

logger = get_logger(__name__)

# Stripe subscription status -> tenant subscription_status
SUBSCRIPTION_STATUS_MAP = {
    "trialing": "trial",
    "active": "active",
    "past_due": "past_due",
    "unpaid": "past_due",
    "canceled": "canceled",
    "incomplete": "expired",
    "incomplete_expired": "expired",
}


def map_subscription_status(stripe_status: Optional[str]) -> str:
    return SUBSCRIPTION_STATUS_MAP.get(stripe_status or "", "active")


def _timestamp(value) -> Optional[datetime]:
    if not value:
        return None
    return datetime.utcfromtimestamp(int(value))


def _first_subscription_item(subscription: dict) -> dict:
    items = (subscription.get("items") or {}).get("data") or []
    return items[0] if items else {}


def extract_tier(subscription: dict) -> str:
    """Tier from the first price's metadata (``tier`` or ``plan``)."""
    price = _first_subscription_item(subscription).get("price") or {}
    metadata = price.get("metadata") or {}
    return normalize_billable_tier(metadata.get("tier") or metadata.get("plan"))


def _tenant_by_customer(db: Session, customer_id: Optional[str]) -> Optional[Tenant]:
    if not customer_id:
        return None
    return db.query(Tenant).filter(Tenant.stripe_customer_id == customer_id).first()


def _tenant_by_subscription(db: Session, subscription_id: Optional[str]) -> Optional[Tenant]:
    if not subscription_id:
        return None
    return db.query(Tenant).filter(Tenant.stripe_subscription_id == subscription_id).first()


# ============================================================================
# HANDLERS
# ============================================================================

def handle_checkout_completed(db: Session, session: dict) -> None:
    metadata = session.get("metadata") or {}
    tenant_id = metadata.get("tenantId") or metadata.get("tenant_id") or session.get("client_reference_id")
    if not tenant_id:
        logger.warning(f"Checkout session {session.get('id')} has no tenant reference")
        return

    tenant = db.query(Tenant).filter(Tenant.id == tenant_id).first()
    if not tenant:
        logger.warning(f"Checkout session for unknown tenant {tenant_id}")
        return

    tenant.stripe_customer_id = session.get("customer") or tenant.stripe_customer_id
    tenant.stripe_subscription_id = session.get("subscription") or tenant.stripe_subscription_id
    logger.info(f"Linked Stripe customer to tenant {tenant.id}", extra={"tenant_id": tenant.id})


def handle_subscription_updated(db: Session, subscription: dict) -> None:
    tenant = _tenant_by_customer(db, subscription.get("customer"))
    if not tenant:
        logger.warning(f"Subscription {subscription.get('id')} for unknown customer")
        return

    tenant.subscription_tier = extract_tier(subscription)
    tenant.subscription_status = map_subscription_status(subscription.get("status"))
    tenant.stripe_subscription_id = subscription.get("id")

    # Newer API versions report the period on the subscription item
    period_end = subscription.get("current_period_end") or \
        _first_subscription_item(subscription).get("current_period_end")
    if period_end:
        tenant.subscription_ends_at = _timestamp(period_end)
    if subscription.get("trial_end"):
        tenant.trial_ends_at = _timestamp(subscription["trial_end"])

    logger.info(
        f"Tenant {tenant.id} subscription -> {tenant.subscription_tier}/{tenant.subscription_status}",
        extra={"tenant_id": tenant.id}
    )


def handle_subscription_deleted(db: Session, subscription: dict) -> None:
    # A customer may hold an old subscription next to the current one
    tenant = _tenant_by_subscription(db, subscription.get("id"))
    if not tenant:
        logger.warning(f"Deleted subscription {subscription.get('id')} matches no tenant")
        return
    tenant.subscription_status = "canceled"
    ended = subscription.get("ended_at") or subscription.get("canceled_at")
    if ended:
        tenant.subscription_ends_at = _timestamp(ended)


def _tenant_for_invoice(db: Session, invoice: dict) -> Optional[Tenant]:
    subscription_id = invoice.get("subscription")
    if not subscription_id:
        # One-off invoice
        return None
    tenant = _tenant_by_subscription(db, subscription_id)
    if not tenant:
        logger.warning(f"Invoice {invoice.get('id')} for unknown subscription {subscription_id}")
    return tenant


def handle_invoice_payment_failed(db: Session, invoice: dict) -> None:
    tenant = _tenant_for_invoice(db, invoice)
    if tenant:
        tenant.subscription_status = "past_due"


def handle_invoice_payment_succeeded(db: Session, invoice: dict) -> None:
    tenant = _tenant_for_invoice(db, invoice)
    if tenant and tenant.subscription_status == "past_due":
        tenant.subscription_status = "active"


EVENT_HANDLERS: Dict[str, Callable[[Session, dict], None]] = {
    "checkout.session.completed": handle_checkout_completed,
    "customer.subscription.created": handle_subscription_updated,
    "customer.subscription.updated": handle_subscription_updated,
    "customer.subscription.deleted": handle_subscription_deleted,
    "invoice.payment_failed": handle_invoice_payment_failed,
    "invoice.payment_succeeded": handle_invoice_payment_succeeded,
}


def is_duplicate(db: Session, event_id: str) -> bool:
    return db.query(StripeWebhookEvent.id).filter(
        StripeWebhookEvent.event_id == event_id
    ).first() is not None


def process_event(db: Session, event: dict) -> dict:
    """
    Dispatch one verified event and record it.

    The handler's updates and the event record commit together, so a
    failed handler leaves the event unrecorded and Stripe's retry runs it
    again.
    """
    event_id = event.get("id")
    event_type = event.get("type", "")

    if is_duplicate(db, event_id):
        logger.info(f"Duplicate Stripe event ignored: {event_id}", extra={"event_id": event_id})
        return {"received": True, "duplicate": True}

    handler = EVENT_HANDLERS.get(event_type)
    if handler:
        handler(db, (event.get("data") or {}).get("object") or {})
    else:
        logger.debug(f"Unhandled Stripe event type: {event_type}")

    db.add(StripeWebhookEvent(event_id=event_id, event_type=event_type))
    try:
        db.commit()
    except IntegrityError:
        # Concurrent delivery of the same event committed first
        db.rollback()
        return {"received": True, "duplicate": True}

    return {"received": True}
