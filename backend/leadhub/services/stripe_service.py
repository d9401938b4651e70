"""Stripe API calls"""
import stripe
from typing import Optional
from leadhub.core.api_keys import get_stripe_secret_key
from leadhub.core.config import settings
from leadhub.core.logging import get_logger

logger = get_logger(__name__)


def _init_stripe():
    stripe.api_key = get_stripe_secret_key()


def create_customer(email: str, name: str, metadata: dict = None) -> str:
    _init_stripe()
    customer = stripe.Customer.create(
        email=email,
        name=name,
        metadata=metadata or {},
    )
    return customer.id


def create_checkout_session(
    name: str,
    description: Optional[str],
    amount: int,
    customer_id: Optional[str],
    customer_email: Optional[str],
    success_url: str,
    cancel_url: str,
    metadata: dict,
) -> dict:
    """One-off payment Checkout Session. Returns {"id", "url"}."""
    _init_stripe()
    params = {
        "mode": "payment",
        "line_items": [{
            "price_data": {
                "currency": settings.STRIPE_CURRENCY,
                "unit_amount": amount,
                "product_data": {"name": name, "description": description or name},
            },
            "quantity": 1,
        }],
        "success_url": success_url,
        "cancel_url": cancel_url,
        "metadata": metadata,
        "payment_intent_data": {"metadata": metadata},
    }
    if customer_id:
        params["customer"] = customer_id
    elif customer_email:
        params["customer_email"] = customer_email

    session = stripe.checkout.Session.create(**params)
    logger.info(f"Checkout session created: id={session.id}, metadata={metadata}")
    return {"id": session.id, "url": session.url}


def retrieve_checkout_session(session_id: str) -> dict:
    _init_stripe()
    session = stripe.checkout.Session.retrieve(session_id)
    return {
        "id": session.id,
        "payment_status": session.payment_status,
        "status": session.status,
        "metadata": dict(session.metadata or {}),
        "customer": session.customer,
    }


def construct_webhook_event(payload: bytes, sig_header: str, webhook_secret: str):
    """Verify the Stripe-Signature header and parse the event"""
    return stripe.Webhook.construct_event(payload, sig_header, webhook_secret)
