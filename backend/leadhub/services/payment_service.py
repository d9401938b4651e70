"""Checkout creation and payment completion.

Both the Stripe webhook and the user-initiated "verify payment" poll end up in
``complete_checkout_session``. Every step it takes is guarded by a conditional
UPDATE or a unique index, so the two paths can run in any order, any number of
times, and converge on the same state.

A paid session that matches no pending record is not silently turned into a
new subscription. It is written to ``payment_reconciliations`` for an admin to
resolve, unless ``WEBHOOK_FALLBACK_ACTIVATION`` is switched on.
"""
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from leadhub.core.config import settings
from leadhub.core.errors import (
    PackageNotFound, PaymentVerificationFailed, SubscriptionNotFound, ValidationError,
)
from leadhub.core.logging import get_logger
from leadhub.models.coin_purchase import CoinPurchase
from leadhub.models.leadcoin_package import LeadCoinPackage
from leadhub.models.payment_reconciliation import PaymentReconciliation
from leadhub.models.subscription import Subscription
from leadhub.models.user import User
from leadhub.models.user_subscription import UserSubscription
from leadhub.services import ledger_service, notification_service, stripe_service, subscription_service
from leadhub.services.mail_service import send_subscription_activated_email
from leadhub.services.system_log_service import log_event

logger = get_logger(__name__)

KIND_SUBSCRIPTION = "subscription"
KIND_COINS = "coins"


def purchase_reference(purchase_id: int) -> str:
    return f"purchase:{purchase_id}"


def _metadata_int(metadata: dict, key: str) -> Optional[int]:
    try:
        return int(metadata.get(key) or 0) or None
    except (TypeError, ValueError):
        return None


def _ensure_customer(db: Session, user: User) -> Optional[str]:
    if user.stripe_customer_id:
        return user.stripe_customer_id
    try:
        customer_id = stripe_service.create_customer(user.email, user.name, {"user_id": str(user.id)})
    except Exception as e:
        logger.warning(f"Stripe customer creation failed: user_id={user.id} - {e}")
        return None
    user.stripe_customer_id = customer_id
    db.commit()
    return customer_id


# =========================================================
# Checkout creation
# =========================================================

def start_subscription_checkout(
    db: Session,
    user: User,
    subscription_id: int,
    success_url: str,
    cancel_url: str,
) -> dict:
    """Pending record first, then the Checkout Session, then link the two"""
    plan = subscription_service.get_plan(db, subscription_id)
    record = subscription_service.create_pending_subscription(db, user.id, plan.id)

    metadata = {
        "type": KIND_SUBSCRIPTION,
        "user_id": str(user.id),
        "subscription_id": str(plan.id),
        "user_subscription_id": str(record.id),
    }
    try:
        session = stripe_service.create_checkout_session(
            name=plan.name,
            description=plan.description,
            amount=plan.price,
            customer_id=_ensure_customer(db, user),
            customer_email=user.email,
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
        )
    except Exception as e:
        logger.error(f"Checkout session creation failed: user_id={user.id}, plan={plan.id} - {e}")
        db.query(UserSubscription).filter(UserSubscription.id == record.id).update(
            {UserSubscription.status: "cancelled"}, synchronize_session=False
        )
        db.commit()
        raise PaymentVerificationFailed("Could not start checkout. Please try again.")

    subscription_service.attach_payment_session(db, record.id, session["id"])
    return {
        "checkout_url": session["url"],
        "session_id": session["id"],
        "user_subscription_id": record.id,
    }


def get_package(db: Session, package_id: int, active_only: bool = True) -> LeadCoinPackage:
    q = db.query(LeadCoinPackage).filter(LeadCoinPackage.id == package_id)
    if active_only:
        q = q.filter(LeadCoinPackage.active == True)
    package = q.first()
    if not package:
        raise PackageNotFound()
    return package


def start_coin_checkout(
    db: Session,
    user: User,
    package_id: int,
    success_url: str,
    cancel_url: str,
) -> dict:
    package = get_package(db, package_id)
    purchase = CoinPurchase(
        user_id=user.id,
        package_id=package.id,
        status="pending",
        lead_coins=package.lead_coins,
        amount=package.price,
    )
    db.add(purchase)
    db.commit()
    db.refresh(purchase)

    metadata = {
        "type": KIND_COINS,
        "user_id": str(user.id),
        "package_id": str(package.id),
        "coin_purchase_id": str(purchase.id),
    }
    try:
        session = stripe_service.create_checkout_session(
            name=package.name,
            description=package.description or f"{package.lead_coins} LeadCoins",
            amount=package.price,
            customer_id=_ensure_customer(db, user),
            customer_email=user.email,
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
        )
    except Exception as e:
        logger.error(f"Coin checkout creation failed: user_id={user.id}, package={package.id} - {e}")
        purchase.status = "cancelled"
        db.commit()
        raise PaymentVerificationFailed("Could not start checkout. Please try again.")

    purchase.payment_session_id = session["id"]
    db.commit()
    return {"checkout_url": session["url"], "session_id": session["id"], "coin_purchase_id": purchase.id}


# =========================================================
# Completion
# =========================================================

def complete_checkout_session(
    db: Session,
    session_id: str,
    metadata: dict,
    payload: Optional[dict] = None,
) -> dict:
    """Apply a paid checkout session. Safe to call repeatedly."""
    kind = metadata.get("type") or KIND_SUBSCRIPTION
    if kind == KIND_COINS:
        return _complete_coin_session(db, session_id, metadata, payload)
    if kind == KIND_SUBSCRIPTION:
        return _complete_subscription_session(db, session_id, metadata, payload)
    logger.warning(f"Unknown checkout type: session={session_id}, type={kind}")
    return {"status": "ignored"}


def _complete_subscription_session(db: Session, session_id: str, metadata: dict, payload: Optional[dict]) -> dict:
    user_id = _metadata_int(metadata, "user_id")
    subscription_id = _metadata_int(metadata, "subscription_id")

    # 1. by session id
    record = subscription_service.get_by_session_id(db, session_id)

    # 2. the user's pending record for the same plan (checkout retried with a new session)
    if record is None and user_id and subscription_id:
        record = subscription_service.find_pending_for_plan(db, user_id, subscription_id)
        if record is not None:
            logger.info(
                f"Matched pending subscription by plan: id={record.id}, "
                f"old_session={record.payment_session_id}, new_session={session_id}"
            )

    if record is None:
        # 3. nothing to activate
        if settings.WEBHOOK_FALLBACK_ACTIVATION and user_id and subscription_id:
            record = _create_record_for_session(db, user_id, subscription_id, session_id)
        else:
            return _require_reconciliation(
                db, session_id, KIND_SUBSCRIPTION, user_id, subscription_id,
                "No pending subscription matches this payment", payload,
            )

    try:
        record, activated = subscription_service.activate_subscription(
            db, record.id, payment_session_id=session_id,
        )
    except PaymentVerificationFailed as e:
        return _require_reconciliation(
            db, session_id, KIND_SUBSCRIPTION, record.user_id, record.subscription_id, e.detail, payload,
        )
    except IntegrityError:
        # the session id is already stored on another record
        db.rollback()
        return _require_reconciliation(
            db, session_id, KIND_SUBSCRIPTION, user_id, subscription_id,
            "Payment session is linked to a different subscription", payload,
        )

    if activated:
        _send_activation_mail(db, record)
    return {
        "status": "activated" if activated else "already_active",
        "user_subscription_id": record.id,
    }


def _create_record_for_session(db: Session, user_id: int, subscription_id: int, session_id: str) -> UserSubscription:
    """Pending record keyed by the payment session id; the unique index stops duplicates."""
    try:
        record = subscription_service.create_pending_subscription(
            db, user_id, subscription_id, payment_session_id=session_id, require_active_plan=False,
        )
    except IntegrityError:
        db.rollback()
        record = subscription_service.get_by_session_id(db, session_id)
        if record is None:
            raise
    log_event(
        db, "WARNING", "subscription_fallback_created",
        f"Subscription record created from payment session {session_id}",
        user_id=user_id,
        details={"session_id": session_id, "subscription_id": subscription_id},
    )
    return record


def _send_activation_mail(db: Session, record: UserSubscription) -> None:
    user = db.query(User).filter(User.id == record.user_id).first()
    plan = db.query(Subscription).filter(Subscription.id == record.subscription_id).first()
    if user and plan:
        send_subscription_activated_email(user.email, user.name, plan.name, record.initial_lead_coins, record.end_date)


def complete_coin_purchase(db: Session, purchase_id: int, commit: bool = True) -> tuple[CoinPurchase, bool]:
    """pending → completed and a single ledger credit. Returns (purchase, completed_now)."""
    purchase = db.query(CoinPurchase).filter(CoinPurchase.id == purchase_id).first()
    if not purchase:
        raise PackageNotFound("Coin purchase not found")

    try:
        result = db.execute(
            update(CoinPurchase)
            .where(CoinPurchase.id == purchase_id, CoinPurchase.status == "pending")
            .values(status="completed")
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            db.refresh(purchase)
            if purchase.status == "completed":
                return purchase, False
            raise PaymentVerificationFailed(f"Coin purchase {purchase.id} is {purchase.status}")

        new_balance = ledger_service.adjust_balance(
            db,
            purchase.user_id,
            purchase.lead_coins,
            ledger_service.TX_PURCHASE,
            f"LeadCoin package purchased ({purchase.lead_coins} coins)",
            reference=purchase_reference(purchase.id),
            commit=False,
        )
        notification_service.create_notification(
            db,
            user_id=purchase.user_id,
            type="coin_received",
            title="LeadCoins added",
            message=f"{purchase.lead_coins} LeadCoins from your purchase were added to your balance.",
            details={"coin_purchase_id": purchase.id, "balance": new_balance},
            commit=False,
        )
        if commit:
            db.commit()
    except Exception:
        if commit:
            db.rollback()
        raise

    db.refresh(purchase)
    logger.info(f"Coin purchase completed: id={purchase.id}, user_id={purchase.user_id}, coins={purchase.lead_coins}")
    return purchase, True


def _complete_coin_session(db: Session, session_id: str, metadata: dict, payload: Optional[dict]) -> dict:
    user_id = _metadata_int(metadata, "user_id")
    package_id = _metadata_int(metadata, "package_id")

    purchase = db.query(CoinPurchase).filter(CoinPurchase.payment_session_id == session_id).first()
    if purchase is None:
        purchase_id = _metadata_int(metadata, "coin_purchase_id")
        if purchase_id:
            purchase = db.query(CoinPurchase).filter(
                CoinPurchase.id == purchase_id,
                CoinPurchase.user_id == user_id,
                CoinPurchase.status == "pending",
            ).first()
            if purchase is not None:
                purchase.payment_session_id = session_id
                db.commit()

    if purchase is None:
        return _require_reconciliation(
            db, session_id, KIND_COINS, user_id, package_id, "No pending coin purchase matches this payment", payload,
        )

    try:
        purchase, completed = complete_coin_purchase(db, purchase.id)
    except PaymentVerificationFailed as e:
        return _require_reconciliation(db, session_id, KIND_COINS, user_id, package_id, e.detail, payload)

    return {"status": "completed" if completed else "already_completed", "coin_purchase_id": purchase.id}


def fail_checkout_session(db: Session, session_id: str) -> dict:
    """Payment failed or the session expired: pending → cancelled / failed"""
    cancelled = subscription_service.cancel_pending_subscription(db, session_id)
    failed = db.query(CoinPurchase).filter(
        CoinPurchase.payment_session_id == session_id,
        CoinPurchase.status == "pending",
    ).update({CoinPurchase.status: "failed"}, synchronize_session=False)
    db.commit()
    if failed:
        logger.info(f"Coin purchase failed: session={session_id}")
    return {"subscription_cancelled": cancelled, "purchase_failed": bool(failed)}


def fail_payment_intent(db: Session, metadata: dict) -> dict:
    """payment_intent.payment_failed carries the checkout metadata but no session id"""
    cancelled = failed = 0
    record_id = _metadata_int(metadata, "user_subscription_id")
    purchase_id = _metadata_int(metadata, "coin_purchase_id")
    if record_id:
        cancelled = db.query(UserSubscription).filter(
            UserSubscription.id == record_id,
            UserSubscription.status == "pending",
            UserSubscription.payment_verified == False,
        ).update({UserSubscription.status: "cancelled"}, synchronize_session=False)
    if purchase_id:
        failed = db.query(CoinPurchase).filter(
            CoinPurchase.id == purchase_id,
            CoinPurchase.status == "pending",
        ).update({CoinPurchase.status: "failed"}, synchronize_session=False)
    db.commit()
    if cancelled or failed:
        logger.info(f"Payment intent failed: user_subscription_id={record_id}, coin_purchase_id={purchase_id}")
    return {"subscription_cancelled": bool(cancelled), "purchase_failed": bool(failed)}


def verify_checkout_session(db: Session, user: User, session_id: str) -> dict:
    """User-side poll after returning from Checkout"""
    if not session_id:
        raise ValidationError("session_id is required")

    try:
        session = stripe_service.retrieve_checkout_session(session_id)
    except Exception as e:
        logger.error(f"Checkout session lookup failed: session={session_id} - {e}")
        raise PaymentVerificationFailed("Could not verify payment with the payment provider")

    metadata = session.get("metadata") or {}
    if _metadata_int(metadata, "user_id") != user.id:
        raise PaymentVerificationFailed("This payment belongs to a different account")

    if session.get("payment_status") != "paid":
        return {
            "status": "pending",
            "payment_status": session.get("payment_status"),
            "balance": ledger_service.get_balance(db, user.id),
        }

    result = complete_checkout_session(db, session_id, metadata, payload={"source": "verify_payment"})
    result["payment_status"] = "paid"
    result["balance"] = ledger_service.get_balance(db, user.id)
    return result


# =========================================================
# Reconciliation queue
# =========================================================

def _require_reconciliation(
    db: Session,
    session_id: str,
    kind: str,
    user_id: Optional[int],
    reference_id: Optional[int],
    reason: str,
    payload: Optional[dict],
) -> dict:
    item = record_reconciliation(db, session_id, kind, user_id, reference_id, reason, payload)
    logger.error(
        f"Payment requires reconciliation: session={session_id}, kind={kind}, "
        f"user_id={user_id}, reference_id={reference_id}, reason={reason}"
    )
    return {"status": "reconciliation_required", "reconciliation_id": item.id}


def record_reconciliation(
    db: Session,
    session_id: str,
    kind: str,
    user_id: Optional[int],
    reference_id: Optional[int],
    reason: str,
    payload: Optional[dict] = None,
) -> PaymentReconciliation:
    existing = db.query(PaymentReconciliation).filter(
        PaymentReconciliation.payment_session_id == session_id
    ).first()
    if existing:
        return existing

    if user_id and not db.query(User.id).filter(User.id == user_id).first():
        user_id = None

    item = PaymentReconciliation(
        payment_session_id=session_id,
        kind=kind,
        user_id=user_id,
        reference_id=reference_id,
        reason=reason,
        payload=payload,
        status="open",
    )
    db.add(item)
    try:
        db.flush()
    except IntegrityError:
        # recorded concurrently by a webhook retry or the verify poll
        db.rollback()
        return db.query(PaymentReconciliation).filter(
            PaymentReconciliation.payment_session_id == session_id
        ).one()

    log_event(
        db, "ERROR", "payment_reconciliation_required",
        f"Unmatched {kind} payment {session_id}: {reason}",
        user_id=user_id,
        details={"session_id": session_id, "reference_id": reference_id},
        commit=False,
    )
    db.commit()
    db.refresh(item)
    return item


def list_reconciliations(db: Session, status: Optional[str] = "open") -> list[PaymentReconciliation]:
    q = db.query(PaymentReconciliation)
    if status:
        q = q.filter(PaymentReconciliation.status == status)
    return q.order_by(PaymentReconciliation.created_at.desc(), PaymentReconciliation.id.desc()).all()


def resolve_reconciliation(db: Session, reconciliation_id: int, admin: User, action: str) -> dict:
    """``activate`` applies the payment to the user; ``dismiss`` closes the item without effect"""
    item = db.query(PaymentReconciliation).filter(PaymentReconciliation.id == reconciliation_id).first()
    if not item:
        raise ValidationError("Reconciliation item not found")
    if item.status != "open":
        raise ValidationError(f"Reconciliation item is already {item.status}")
    if action not in ("activate", "dismiss"):
        raise ValidationError("action must be 'activate' or 'dismiss'")

    outcome = {"status": "dismissed"}
    if action == "activate":
        if not item.user_id or not item.reference_id:
            raise ValidationError("Item has no user or plan/package to apply")
        if item.kind == KIND_SUBSCRIPTION:
            outcome = _activate_reconciled_subscription(db, item)
        else:
            outcome = _complete_reconciled_purchase(db, item)

    now = subscription_service.utcnow()
    db.query(PaymentReconciliation).filter(
        PaymentReconciliation.id == item.id,
        PaymentReconciliation.status == "open",
    ).update({
        PaymentReconciliation.status: "resolved" if action == "activate" else "dismissed",
        PaymentReconciliation.resolved_by_id: admin.id,
        PaymentReconciliation.resolved_at: now,
    }, synchronize_session=False)
    log_event(
        db, "INFO", "payment_reconciliation_resolved",
        f"Reconciliation {item.id} {action} by admin {admin.id}",
        user_id=item.user_id,
        details={"session_id": item.payment_session_id, "outcome": outcome},
        commit=False,
    )
    db.commit()
    return outcome


def _activate_reconciled_subscription(db: Session, item: PaymentReconciliation) -> dict:
    record = subscription_service.get_by_session_id(db, item.payment_session_id)
    if record is None:
        try:
            record = subscription_service.create_pending_subscription(
                db, item.user_id, item.reference_id,
                payment_session_id=item.payment_session_id, require_active_plan=False,
            )
        except SubscriptionNotFound:
            raise ValidationError("The plan for this payment no longer exists")
    elif record.status == "cancelled":
        # reopen a record cancelled by an earlier failure event for the same session
        db.query(UserSubscription).filter(
            UserSubscription.id == record.id,
            UserSubscription.status == "cancelled",
        ).update({UserSubscription.status: "pending", UserSubscription.payment_verified: False},
                 synchronize_session=False)
        db.commit()
    record, activated = subscription_service.activate_subscription(db, record.id)
    if activated:
        _send_activation_mail(db, record)
    return {"status": "activated" if activated else "already_active", "user_subscription_id": record.id}


def _complete_reconciled_purchase(db: Session, item: PaymentReconciliation) -> dict:
    purchase = db.query(CoinPurchase).filter(CoinPurchase.payment_session_id == item.payment_session_id).first()
    if purchase is None:
        package = get_package(db, item.reference_id, active_only=False)
        purchase = CoinPurchase(
            user_id=item.user_id,
            package_id=package.id,
            payment_session_id=item.payment_session_id,
            status="pending",
            lead_coins=package.lead_coins,
            amount=package.price,
        )
        db.add(purchase)
        db.commit()
        db.refresh(purchase)
    elif purchase.status in ("failed", "cancelled"):
        purchase.status = "pending"
        db.commit()
    purchase, completed = complete_coin_purchase(db, purchase.id)
    return {"status": "completed" if completed else "already_completed", "coin_purchase_id": purchase.id}


def serialize_reconciliation(item: PaymentReconciliation) -> dict:
    return {
        "id": item.id,
        "payment_session_id": item.payment_session_id,
        "kind": item.kind,
        "user_id": item.user_id,
        "reference_id": item.reference_id,
        "reason": item.reason,
        "status": item.status,
        "resolved_by_id": item.resolved_by_id,
        "resolved_at": item.resolved_at.isoformat() if item.resolved_at else None,
        "created_at": item.created_at.isoformat() if item.created_at else None,
    }
