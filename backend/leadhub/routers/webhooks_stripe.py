"""Stripe webhook router"""
from fastapi import APIRouter, Request, HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from leadhub.core.database import SessionLocal
from leadhub.core.api_keys import get_stripe_webhook_secret
from leadhub.models.processed_stripe_event import ProcessedStripeEvent
from leadhub.services import payment_service, stripe_service
from leadhub.services.system_log_service import log_event
from leadhub.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["webhooks"])

COMPLETED_EVENTS = {"checkout.session.completed", "checkout.session.async_payment_succeeded"}
FAILED_SESSION_EVENTS = {"checkout.session.async_payment_failed", "checkout.session.expired"}


@router.post("/api/webhooks/payment")
@router.post("/api/webhooks/stripe")
async def stripe_webhook(request: Request):
    """Stripe webhook endpoint (CSRF exempt, signature verified)"""
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature", "")

    try:
        event = stripe_service.construct_webhook_event(
            payload, sig_header, get_stripe_webhook_secret()
        )
    except Exception as e:
        logger.error(f"Stripe webhook signature verification failed: {e}")
        raise HTTPException(status_code=401, detail="Invalid signature")

    event_id = event["id"]
    event_type = event["type"]
    data = event["data"]["object"]

    db = SessionLocal()
    try:
        if _is_event_processed(db, event_id):
            logger.info(f"Stripe webhook duplicate skipped: {event_id} ({event_type})")
            return {"received": True}

        if event_type in COMPLETED_EVENTS:
            result = _handle_checkout_completed(db, data)
        elif event_type in FAILED_SESSION_EVENTS:
            result = payment_service.fail_checkout_session(db, data["id"])
        elif event_type == "payment_intent.payment_failed":
            result = payment_service.fail_payment_intent(db, dict(data.get("metadata") or {}))
        else:
            logger.info(f"Unhandled Stripe event: {event_type}")
            return {"received": True}

        _record_processed_event(db, event_id, event_type)

    except Exception as e:
        db.rollback()
        logger.error(f"Stripe webhook processing error: {event_type} ({event_id}) - {e}")
        try:
            log_event(
                db, "ERROR", "webhook_failure",
                f"Stripe webhook {event_type} failed: {e}",
                details={"event_id": event_id},
            )
        except Exception:
            db.rollback()
        raise HTTPException(status_code=500, detail=f"Webhook processing failed: {e}")
    finally:
        db.close()

    return {"received": True, "result": result}


# =========================================================
# Idempotency helpers
# =========================================================

def _is_event_processed(db: Session, event_id: str) -> bool:
    return db.query(ProcessedStripeEvent).filter(
        ProcessedStripeEvent.event_id == event_id
    ).first() is not None


def _record_processed_event(db: Session, event_id: str, event_type: str):
    db.add(ProcessedStripeEvent(event_id=event_id, event_type=event_type))
    try:
        db.commit()
    except IntegrityError:
        # a concurrent delivery of the same event got there first
        db.rollback()


# =========================================================
# Event handlers
# =========================================================

def _handle_checkout_completed(db: Session, data: dict) -> dict:
    session_id = data["id"]
    if data.get("payment_status") not in ("paid", "no_payment_required"):
        logger.info(f"Checkout completed without payment yet: session={session_id}")
        return {"status": "awaiting_payment"}

    metadata = dict(data.get("metadata") or {})
    result = payment_service.complete_checkout_session(
        db, session_id, metadata, payload={"source": "webhook", "metadata": metadata},
    )
    logger.info(f"Checkout completed: session={session_id}, result={result}")
    return result
