"""
Stripe Webhook Endpoint

Mounted at /stripe/webhooks outside the versioned API. Authentication is
the Stripe-Signature header; the tenant middleware skips this path.
"""
import json

import stripe
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from storefront_api.config import get_settings
from storefront_api.database import get_db
from storefront_api.core.exceptions import ServiceNotConfigured
from storefront_api.services.stripe_webhooks import process_event
from storefront_api.utils.logging import get_logger, log_security_event

logger = get_logger(__name__)
settings = get_settings()

router = APIRouter(prefix="/stripe", tags=["webhooks"])

SIGNATURE_TOLERANCE_SECONDS = 300


@router.post("/webhooks")
async def stripe_webhook(request: Request, db: Session = Depends(get_db)):
    if not settings.STRIPE_SECRET_KEY or not settings.STRIPE_WEBHOOK_SECRET:
        logger.error("Stripe webhook received but Stripe is not configured")
        raise ServiceNotConfigured("Stripe")

    signature = request.headers.get("stripe-signature")
    if not signature:
        log_security_event(
            "webhook_signature_invalid",
            {"reason": "missing_signature", "client": request.client.host if request.client else None},
            logger
        )
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing Stripe-Signature header")

    payload = (await request.body()).decode("utf-8")
    try:
        stripe.WebhookSignature.verify_header(
            payload, signature, settings.STRIPE_WEBHOOK_SECRET, SIGNATURE_TOLERANCE_SECONDS
        )
        event = json.loads(payload)
    except (stripe.SignatureVerificationError, ValueError) as e:
        log_security_event(
            "webhook_signature_invalid",
            {"reason": str(e), "client": request.client.host if request.client else None},
            logger
        )
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid Stripe signature")

    logger.info(f"Stripe event received: {event.get('type')} ({event.get('id')})", extra={"event_id": event.get("id")})

    try:
        return process_event(db, event)
    except Exception as e:
        db.rollback()
        logger.exception(f"Stripe event {event.get('id')} failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook handler failed"
        )
