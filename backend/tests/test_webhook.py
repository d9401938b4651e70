import json

import pytest

from leadhub.core.config import settings
from leadhub.models import (
    CoinPurchase, CoinTransaction, PaymentReconciliation, ProcessedStripeEvent, SystemLog, User,
    UserSubscription,
)
from leadhub.services import ledger_service, payment_service, subscription_service


def _event(event_id, event_type, obj):
    return {"id": event_id, "type": event_type, "data": {"object": obj}}


def _paid_session(session_id, metadata, payment_status="paid"):
    return {"id": session_id, "payment_status": payment_status, "metadata": metadata}


def _post(client, event, signature="valid"):
    return client.post(
        "/api/webhooks/stripe",
        content=json.dumps(event),
        headers={"stripe-signature": signature, "content-type": "application/json"},
    )


def _metadata(user, plan, record=None):
    metadata = {"type": "subscription", "user_id": str(user.id), "subscription_id": str(plan.id)}
    if record is not None:
        metadata["user_subscription_id"] = str(record.id)
    return metadata


def _balance(db, user):
    db.expire_all()
    return ledger_service.get_balance(db, user.id)


@pytest.fixture
def pending(db, make_user, make_plan):
    user = make_user()
    plan = make_plan(lead_coins=100)
    record = subscription_service.create_pending_subscription(db, user.id, plan.id, payment_session_id="cs_1")
    return user, plan, record


def test_checkout_completed_activates(client, db, fake_stripe, pending, sent_mail):
    user, plan, record = pending

    res = _post(client, _event("evt_1", "checkout.session.completed", _paid_session("cs_1", _metadata(user, plan, record))))

    assert res.status_code == 200
    assert res.json()["result"]["status"] == "activated"
    db.expire_all()
    record = db.get(UserSubscription, record.id)
    assert record.status == "active"
    assert record.payment_verified is True
    assert _balance(db, user) == 100
    assert sent_mail[-1]["template"] == "subscription_activated.html"
    assert db.query(ProcessedStripeEvent).filter(ProcessedStripeEvent.event_id == "evt_1").count() == 1


def test_redelivered_event_is_ignored(client, db, fake_stripe, pending):
    user, plan, record = pending
    event = _event("evt_1", "checkout.session.completed", _paid_session("cs_1", _metadata(user, plan, record)))

    _post(client, event)
    res = _post(client, event)

    assert res.status_code == 200
    assert "result" not in res.json()
    assert _balance(db, user) == 100


def test_second_event_for_same_session_credits_once(client, db, fake_stripe, pending):
    user, plan, record = pending
    session = _paid_session("cs_1", _metadata(user, plan, record))

    _post(client, _event("evt_1", "checkout.session.completed", session))
    res = _post(client, _event("evt_2", "checkout.session.async_payment_succeeded", session))

    assert res.json()["result"]["status"] == "already_active"
    assert _balance(db, user) == 100
    assert db.query(CoinTransaction).filter(CoinTransaction.user_id == user.id).count() == 1


def test_unpaid_completion_waits(client, db, fake_stripe, pending):
    user, plan, record = pending
    session = _paid_session("cs_1", _metadata(user, plan, record), payment_status="unpaid")

    res = _post(client, _event("evt_1", "checkout.session.completed", session))

    assert res.json()["result"] == {"status": "awaiting_payment"}
    assert _balance(db, user) == 0


def test_matches_pending_record_for_same_plan(client, db, fake_stripe, pending):
    """Checkout retried: the paid session is not the one stored on the record"""
    user, plan, record = pending

    res = _post(client, _event("evt_1", "checkout.session.completed", _paid_session("cs_retry", _metadata(user, plan))))

    assert res.json()["result"]["user_subscription_id"] == record.id
    db.expire_all()
    record = db.get(UserSubscription, record.id)
    assert record.status == "active"
    assert record.payment_session_id == "cs_retry"
    assert _balance(db, user) == 100


def test_unmatched_payment_goes_to_reconciliation(client, db, fake_stripe, make_user, make_plan):
    user = make_user()
    plan = make_plan()

    res = _post(client, _event("evt_1", "checkout.session.completed", _paid_session("cs_orphan", _metadata(user, plan))))

    assert res.json()["result"]["status"] == "reconciliation_required"
    item = db.query(PaymentReconciliation).one()
    assert item.payment_session_id == "cs_orphan"
    assert item.user_id == user.id
    assert item.reference_id == plan.id
    assert db.query(UserSubscription).count() == 0
    assert _balance(db, user) == 0
    assert db.query(SystemLog).filter(SystemLog.event_type == "payment_reconciliation_required").count() == 1


def test_fallback_activation_when_enabled(client, db, fake_stripe, make_user, make_plan, monkeypatch):
    monkeypatch.setattr(settings, "WEBHOOK_FALLBACK_ACTIVATION", True)
    user = make_user()
    plan = make_plan(lead_coins=60)
    event = _event("evt_1", "checkout.session.completed", _paid_session("cs_orphan", _metadata(user, plan)))

    _post(client, event)
    _post(client, dict(event, id="evt_2"))

    record = db.query(UserSubscription).one()
    assert record.status == "active"
    assert record.payment_session_id == "cs_orphan"
    assert _balance(db, user) == 60


def test_expired_session_cancels_pending(client, db, fake_stripe, pending):
    user, plan, record = pending

    res = _post(client, _event("evt_1", "checkout.session.expired", {"id": "cs_1", "metadata": {}}))

    assert res.json()["result"]["subscription_cancelled"] is True
    db.expire_all()
    assert db.get(UserSubscription, record.id).status == "cancelled"


def test_payment_intent_failure_uses_metadata(client, db, fake_stripe, pending):
    user, plan, record = pending
    intent = {"id": "pi_1", "metadata": _metadata(user, plan, record)}

    res = _post(client, _event("evt_1", "payment_intent.payment_failed", intent))

    assert res.json()["result"]["subscription_cancelled"] is True
    db.expire_all()
    assert db.get(UserSubscription, record.id).status == "cancelled"


def test_paid_after_cancel_needs_reconciliation(client, db, fake_stripe, make_user, pending):
    user, plan, record = pending
    _post(client, _event("evt_1", "checkout.session.expired", {"id": "cs_1", "metadata": {}}))

    res = _post(client, _event("evt_2", "checkout.session.completed", _paid_session("cs_1", _metadata(user, plan, record))))

    assert res.json()["result"]["status"] == "reconciliation_required"
    assert _balance(db, user) == 0

    admin = make_user(role="admin")
    item = db.query(PaymentReconciliation).one()
    outcome = payment_service.resolve_reconciliation(db, item.id, admin, "activate")

    assert outcome == {"status": "activated", "user_subscription_id": record.id}
    assert _balance(db, user) == 100
    db.expire_all()
    assert db.get(PaymentReconciliation, item.id).status == "resolved"


def test_bad_signature_rejected(client, db, fake_stripe, pending):
    user, plan, record = pending
    event = _event("evt_1", "checkout.session.completed", _paid_session("cs_1", _metadata(user, plan, record)))

    res = _post(client, event, signature="forged")

    assert res.status_code == 401
    assert _balance(db, user) == 0


def test_unhandled_event_acknowledged(client, fake_stripe):
    res = _post(client, _event("evt_1", "customer.created", {"id": "cus_1"}))
    assert res.json() == {"received": True}


def test_legacy_payment_path(client, db, fake_stripe, pending):
    user, plan, record = pending
    event = _event("evt_1", "checkout.session.completed", _paid_session("cs_1", _metadata(user, plan, record)))

    res = client.post(
        "/api/webhooks/payment",
        content=json.dumps(event),
        headers={"stripe-signature": "valid", "content-type": "application/json"},
    )

    assert res.status_code == 200
    assert _balance(db, user) == 100


# =========================================================
# Coin packages
# =========================================================

def test_coin_purchase_flow(client, login, db, fake_stripe, make_user, make_package):
    user = make_user(lead_coins=3)
    package = make_package(lead_coins=50)
    login(user)

    res = client.post("/api/subscriptions/buy-coins", json={"package_id": package.id})
    assert res.status_code == 200
    session_id = res.json()["session_id"]
    metadata = fake_stripe["sessions"][session_id]["metadata"]

    event = _event("evt_1", "checkout.session.completed", _paid_session(session_id, metadata))
    _post(client, event)
    _post(client, dict(event, id="evt_2"))

    purchase = db.query(CoinPurchase).one()
    assert purchase.status == "completed"
    assert _balance(db, user) == 53
    tx = db.query(CoinTransaction).filter(CoinTransaction.user_id == user.id).one()
    assert tx.reference == f"purchase:{purchase.id}"


# =========================================================
# Verify-payment poll
# =========================================================

def test_verify_payment_before_and_after_webhook(client, login, db, fake_stripe, make_user, make_plan):
    user = make_user()
    plan = make_plan(lead_coins=100)
    login(user)

    session_id = client.post("/api/subscriptions/purchase", json={"subscription_id": plan.id}).json()["session_id"]

    res = client.get("/api/subscriptions/verify-payment", params={"session_id": session_id})
    assert res.json()["status"] == "pending"
    assert res.json()["balance"] == 0

    fake_stripe["sessions"][session_id]["payment_status"] = "paid"
    res = client.get("/api/subscriptions/verify-payment", params={"session_id": session_id})
    assert res.json()["status"] == "activated"
    assert res.json()["balance"] == 100

    # the webhook arriving afterwards changes nothing
    metadata = fake_stripe["sessions"][session_id]["metadata"]
    res = _post(client, _event("evt_1", "checkout.session.completed", _paid_session(session_id, metadata)))
    assert res.json()["result"]["status"] == "already_active"
    assert _balance(db, user) == 100


def test_verify_payment_other_users_session(client, login, make_user, make_plan, fake_stripe):
    owner = make_user()
    other = make_user()
    plan = make_plan()
    login(owner)
    session_id = client.post("/api/subscriptions/purchase", json={"subscription_id": plan.id}).json()["session_id"]
    fake_stripe["sessions"][session_id]["payment_status"] = "paid"

    login(other)
    res = client.get("/api/subscriptions/verify-payment", params={"session_id": session_id})

    assert res.status_code == 400
    assert res.json()["error"] == "PaymentVerificationFailed"


def test_reconciliation_admin_endpoints(client, login, db, fake_stripe, make_user, make_plan):
    user = make_user()
    plan = make_plan(lead_coins=40)
    _post(client, _event("evt_1", "checkout.session.completed", _paid_session("cs_orphan", _metadata(user, plan))))

    login(make_user(role="admin"))
    items = client.get("/api/admin/reconciliations").json()
    assert [i["payment_session_id"] for i in items] == ["cs_orphan"]

    res = client.post(f"/api/admin/reconciliations/{items[0]['id']}/resolve", json={"action": "activate"})

    assert res.status_code == 200
    assert res.json()["status"] == "activated"
    assert _balance(db, user) == 40
    assert client.get("/api/admin/reconciliations").json() == []
    assert db.query(User).filter(User.id == user.id).one().lead_coins == 40
