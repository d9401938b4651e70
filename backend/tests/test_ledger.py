import pytest
from sqlalchemy.exc import IntegrityError

from leadhub.core.errors import InsufficientFunds, UserNotFound, ValidationError
from leadhub.models import CoinTransaction, Notification
from leadhub.services import ledger_service
from leadhub.services.ledger_service import DuplicateLedgerEntry


def _transactions(db, user_id):
    return db.query(CoinTransaction).filter(CoinTransaction.user_id == user_id).order_by(CoinTransaction.id).all()


def test_credit_and_debit_append_entries(db, make_user):
    user = make_user()

    assert ledger_service.credit(db, user.id, 30, ledger_service.TX_COUPON, "Coupon") == 30
    assert ledger_service.debit(db, user.id, 12, ledger_service.TX_SPENT, "Viewed lead") == 18

    txs = _transactions(db, user.id)
    assert [t.amount for t in txs] == [30, -12]
    assert [t.balance_after for t in txs] == [30, 18]
    assert ledger_service.get_balance(db, user.id) == 18


def test_overdraft_leaves_balance_unchanged(db, make_user):
    user = make_user(lead_coins=4)

    with pytest.raises(InsufficientFunds) as exc:
        ledger_service.debit(db, user.id, 5, ledger_service.TX_SPENT, "Viewed lead")

    assert exc.value.balance == 4
    assert exc.value.required == 5
    assert ledger_service.get_balance(db, user.id) == 4
    assert _transactions(db, user.id) == []


def test_debit_to_exactly_zero(db, make_user):
    user = make_user(lead_coins=5)
    assert ledger_service.debit(db, user.id, 5, ledger_service.TX_SPENT, "Viewed lead") == 0


def test_stale_sessions_cannot_overdraw(make_user, make_session):
    user = make_user(lead_coins=10)
    first, second = make_session(), make_session()

    # both see a balance of 10 before either debits
    assert ledger_service.get_balance(first, user.id) == 10
    assert ledger_service.get_balance(second, user.id) == 10

    ledger_service.debit(first, user.id, 8, ledger_service.TX_SPENT, "Lead A")
    with pytest.raises(InsufficientFunds):
        ledger_service.debit(second, user.id, 8, ledger_service.TX_SPENT, "Lead B")

    assert ledger_service.get_balance(second, user.id) == 2


def test_reference_is_applied_once(db, make_user):
    user = make_user()
    ledger_service.credit(db, user.id, 100, ledger_service.TX_SUBSCRIPTION, "Plan", reference="subscription:1")

    with pytest.raises(DuplicateLedgerEntry):
        ledger_service.credit(db, user.id, 100, ledger_service.TX_SUBSCRIPTION, "Plan", reference="subscription:1")

    assert ledger_service.get_balance(db, user.id) == 100
    assert len(_transactions(db, user.id)) == 1


def test_unreferenced_entry_failure_is_not_a_duplicate(db, make_user):
    user = make_user(lead_coins=10)

    with pytest.raises(IntegrityError):
        ledger_service.credit(db, user.id, 5, ledger_service.TX_COUPON, None)

    assert ledger_service.get_balance(db, user.id) == 10
    assert _transactions(db, user.id) == []


def test_rejects_zero_and_negative_amounts(db, make_user):
    user = make_user(lead_coins=10)
    with pytest.raises(ValidationError):
        ledger_service.credit(db, user.id, 0, ledger_service.TX_COUPON, "nothing")
    with pytest.raises(ValidationError):
        ledger_service.debit(db, user.id, -3, ledger_service.TX_SPENT, "negative")
    with pytest.raises(ValidationError):
        ledger_service.adjust_balance(db, user.id, 5, "gift", "unknown type")


def test_unknown_user(db):
    with pytest.raises(UserNotFound):
        ledger_service.credit(db, 9999, 5, ledger_service.TX_COUPON, "nobody")


def test_grant_coins_notifies_and_mails(db, make_user, sent_mail):
    admin = make_user(role="admin")
    user = make_user()

    balance = ledger_service.grant_coins(db, user.id, 50, admin.id)

    assert balance == 50
    tx = _transactions(db, user.id)[0]
    assert tx.type == "admin_topup"
    assert tx.description == "Admin Top-up"
    assert tx.admin_id == admin.id

    notification = db.query(Notification).filter(Notification.user_id == user.id).one()
    assert notification.type == "coin_received"
    assert notification.details["amount"] == 50

    assert sent_mail[-1]["template"] == "coins_received.html"
    assert sent_mail[-1]["to"] == user.email


def test_grant_coins_custom_description(db, make_user):
    admin = make_user(role="admin")
    user = make_user()
    ledger_service.grant_coins(db, user.id, 5, admin.id, description="  Goodwill credit ")
    assert _transactions(db, user.id)[0].description == "Goodwill credit"


def test_reconcile_balance_reports_drift(db, make_user):
    user = make_user()
    ledger_service.credit(db, user.id, 40, ledger_service.TX_COUPON, "Coupon")
    assert ledger_service.reconcile_balance(db, user.id)["consistent"] is True

    drifted = make_user(lead_coins=7)
    report = ledger_service.reconcile_balance(db, drifted.id)
    assert report["drift"] == 7
    assert report["consistent"] is False


def test_admin_send_coins_endpoint(client, login, db, make_user):
    admin = make_user(role="admin")
    user = make_user()
    login(admin)

    res = client.post(f"/api/admin/users/{user.id}/send-coins", json={"amount": 25})

    assert res.status_code == 200
    assert res.json()["new_balance"] == 25
    db.expire_all()
    assert db.get(type(user), user.id).lead_coins == 25


def test_send_coins_requires_coin_management(client, login, make_user):
    subadmin = make_user(role="subadmin", permissions=["user_management"])
    user = make_user()
    login(subadmin)

    res = client.post(f"/api/admin/users/{user.id}/send-coins", json={"amount": 25})
    assert res.status_code == 403


def test_my_transactions(client, login, db, make_user):
    user = make_user()
    ledger_service.credit(db, user.id, 15, ledger_service.TX_COUPON, "Coupon")
    login(user)

    res = client.get("/api/me/transactions")

    assert res.status_code == 200
    body = res.json()
    assert body["balance"] == 15
    assert body["transactions"][0]["amount"] == 15
