from datetime import timedelta

import pytest

from leadhub.core.errors import PaymentVerificationFailed, SubscriptionNotFound
from leadhub.models import CoinTransaction, Notification, UserSubscription
from leadhub.services import ledger_service, subscription_service


def test_pending_record_moves_no_coins(db, make_user, make_plan):
    user = make_user()
    plan = make_plan(lead_coins=100)

    record = subscription_service.create_pending_subscription(db, user.id, plan.id)

    assert record.status == "pending"
    assert record.payment_verified is False
    assert record.initial_lead_coins == 100
    assert ledger_service.get_balance(db, user.id) == 0


def test_pending_requires_active_plan(db, make_user, make_plan):
    user = make_user()
    plan = make_plan(active=False)
    with pytest.raises(SubscriptionNotFound):
        subscription_service.create_pending_subscription(db, user.id, plan.id)


def test_activation_credits_plan_coins(db, make_user, make_plan):
    user = make_user(lead_coins=7)
    plan = make_plan(lead_coins=100, duration_days=30)
    record = subscription_service.create_pending_subscription(db, user.id, plan.id)

    record, activated = subscription_service.activate_subscription(db, record.id, payment_session_id="cs_1")

    assert activated is True
    assert record.status == "active"
    assert record.payment_verified is True
    assert record.payment_session_id == "cs_1"
    assert record.end_date - record.start_date == timedelta(days=30)
    assert ledger_service.get_balance(db, user.id) == 107

    tx = db.query(CoinTransaction).filter(CoinTransaction.user_id == user.id).one()
    assert tx.reference == f"subscription:{record.id}"
    assert tx.type == "subscription"

    assert db.query(Notification).filter(
        Notification.user_id == user.id, Notification.type == "subscription_update"
    ).count() == 1


def test_activating_twice_credits_once(db, make_user, make_plan):
    user = make_user()
    plan = make_plan(lead_coins=100)
    record = subscription_service.create_pending_subscription(db, user.id, plan.id)

    subscription_service.activate_subscription(db, record.id)
    record, activated = subscription_service.activate_subscription(db, record.id)

    assert activated is False
    assert record.status == "active"
    assert ledger_service.get_balance(db, user.id) == 100


def test_concurrent_activation_credits_once(make_user, make_plan, make_session):
    user = make_user()
    plan = make_plan(lead_coins=100)
    setup = make_session()
    record_id = subscription_service.create_pending_subscription(setup, user.id, plan.id).id

    webhook, poll = make_session(), make_session()
    # both requests have read the record as pending
    assert webhook.get(UserSubscription, record_id).status == "pending"
    assert poll.get(UserSubscription, record_id).status == "pending"

    _, first = subscription_service.activate_subscription(webhook, record_id)
    _, second = subscription_service.activate_subscription(poll, record_id)

    assert (first, second) == (True, False)
    assert ledger_service.get_balance(setup, user.id) == 100
    assert setup.query(CoinTransaction).filter(CoinTransaction.user_id == user.id).count() == 1


def test_cancelled_record_cannot_activate(db, make_user, make_plan):
    user = make_user()
    plan = make_plan()
    record = subscription_service.create_pending_subscription(db, user.id, plan.id, payment_session_id="cs_x")

    assert subscription_service.cancel_pending_subscription(db, "cs_x") is True
    with pytest.raises(PaymentVerificationFailed):
        subscription_service.activate_subscription(db, record.id)

    assert ledger_service.get_balance(db, user.id) == 0


def test_cancel_leaves_active_records(db, make_user, make_plan):
    user = make_user()
    plan = make_plan()
    record = subscription_service.create_pending_subscription(db, user.id, plan.id, payment_session_id="cs_y")
    subscription_service.activate_subscription(db, record.id)

    assert subscription_service.cancel_pending_subscription(db, "cs_y") is False
    db.refresh(record)
    assert record.status == "active"


def test_unknown_record(db):
    with pytest.raises(SubscriptionNotFound):
        subscription_service.activate_subscription(db, 4242)


def test_expiry_keeps_coins(db, make_user, make_plan):
    user = make_user()
    plan = make_plan(lead_coins=100, duration_days=30)
    record = subscription_service.create_pending_subscription(db, user.id, plan.id)
    record, _ = subscription_service.activate_subscription(db, record.id)

    assert subscription_service.expire_subscriptions(db, now=record.end_date - timedelta(minutes=1)) == 0
    assert subscription_service.expire_subscriptions(db, now=record.end_date + timedelta(minutes=1)) == 1

    db.refresh(record)
    assert record.status == "expired"
    assert ledger_service.get_balance(db, user.id) == 100
    with pytest.raises(PaymentVerificationFailed):
        subscription_service.activate_subscription(db, record.id)


def test_queries(db, make_user, make_plan):
    user = make_user()
    basic = make_plan(name="Basic")
    pro = make_plan(name="Pro")
    first = subscription_service.create_pending_subscription(db, user.id, basic.id)
    second = subscription_service.create_pending_subscription(db, user.id, pro.id)
    subscription_service.activate_subscription(db, first.id)

    assert subscription_service.get_active_subscription(db, user.id).id == first.id
    assert [r.id for r in subscription_service.get_pending_subscriptions(db, user.id)] == [second.id]
    assert subscription_service.find_pending_for_plan(db, user.id, pro.id).id == second.id
    assert [r.id for r in subscription_service.get_subscription_history(db, user.id)] == [second.id, first.id]
    assert subscription_service.count_by_status(db) == {"active": 1, "pending": 1}


# =========================================================
# API
# =========================================================

def test_list_active_plans(client, make_plan):
    make_plan(name="Hidden", active=False)
    make_plan(name="Starter", price=1900)

    res = client.get("/api/subscriptions")

    assert res.status_code == 200
    assert [p["name"] for p in res.json()] == ["Starter"]


def test_purchase_creates_pending_record(client, login, db, make_user, make_plan, fake_stripe):
    user = make_user()
    plan = make_plan()
    login(user)

    res = client.post("/api/subscriptions/purchase", json={"subscription_id": plan.id})

    assert res.status_code == 200
    session_id = res.json()["session_id"]
    assert res.json()["checkout_url"].endswith(session_id)

    record = db.query(UserSubscription).filter(UserSubscription.user_id == user.id).one()
    assert record.status == "pending"
    assert record.payment_session_id == session_id
    assert fake_stripe["sessions"][session_id]["metadata"]["user_subscription_id"] == str(record.id)
    assert ledger_service.get_balance(db, user.id) == 0


def test_purchase_requires_login(client, make_plan, fake_stripe):
    plan = make_plan()
    res = client.post("/api/subscriptions/purchase", json={"subscription_id": plan.id})
    assert res.status_code == 401


def test_purchase_rejects_foreign_redirect(client, login, make_user, make_plan, fake_stripe):
    login(make_user())
    plan = make_plan()
    res = client.post(
        "/api/subscriptions/purchase",
        json={"subscription_id": plan.id, "success_url": "https://evil.example.net/done"},
    )
    assert res.status_code == 400


def test_plan_update_refused_once_subscribed(client, login, db, make_user, make_plan):
    admin = make_user(role="admin")
    user = make_user()
    plan = make_plan(lead_coins=100)
    subscription_service.create_pending_subscription(db, user.id, plan.id)
    login(admin)

    res = client.put(f"/api/admin/subscriptions/plans/{plan.id}", json={"lead_coins": 500})
    assert res.status_code == 400

    res = client.put(f"/api/admin/subscriptions/plans/{plan.id}", json={"active": False})
    assert res.status_code == 200
    assert res.json()["active"] is False
    assert res.json()["lead_coins"] == 100

    res = client.delete(f"/api/admin/subscriptions/plans/{plan.id}")
    assert res.status_code == 400


def test_plan_editable_without_subscribers(client, login, make_user, make_plan):
    login(make_user(role="admin"))
    plan = make_plan(lead_coins=100)

    res = client.put(f"/api/admin/subscriptions/plans/{plan.id}", json={"lead_coins": 150, "price": 2900})

    assert res.status_code == 200
    assert res.json()["lead_coins"] == 150
    assert client.delete(f"/api/admin/subscriptions/plans/{plan.id}").status_code == 200
