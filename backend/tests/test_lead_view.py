import pytest

from leadhub.core.errors import InsufficientCoins, LeadNotFound, ValidationError
from leadhub.models import CoinTransaction, LeadView, Notification
from leadhub.services import lead_view_service, ledger_service


def _views(db, user_id):
    return db.query(LeadView).filter(LeadView.user_id == user_id).all()


def test_first_view_debits_repeat_is_free(db, make_user, make_lead, coin_costs):
    user = make_user(lead_coins=20)
    lead = make_lead()

    first = lead_view_service.request_contact_info(db, user, lead.id)
    second = lead_view_service.request_contact_info(db, user, lead.id)

    assert first.to_dict() == {"granted": True, "coins_spent": 5, "remaining_coins": 15, "already_viewed": False}
    assert second.to_dict() == {"granted": True, "coins_spent": 0, "remaining_coins": 15, "already_viewed": True}
    assert len(_views(db, user.id)) == 1
    tx = db.query(CoinTransaction).filter(CoinTransaction.user_id == user.id).one()
    assert tx.amount == -5
    assert tx.type == "spent"


def test_view_type_sets_cost(db, make_user, make_lead, coin_costs):
    user = make_user(lead_coins=20)
    lead = make_lead()

    result = lead_view_service.request_contact_info(db, user, lead.id, "full_access")

    assert result.coins_spent == 15
    assert _views(db, user.id)[0].view_type == "full_access"


def test_one_view_per_lead_regardless_of_type(db, make_user, make_lead, coin_costs):
    user = make_user(lead_coins=30)
    lead = make_lead()
    lead_view_service.request_contact_info(db, user, lead.id, "contact_info")

    result = lead_view_service.request_contact_info(db, user, lead.id, "full_access")

    assert result.already_viewed is True
    assert ledger_service.get_balance(db, user.id) == 25


def test_spending_last_coins_warns(db, make_user, make_lead, coin_costs, sent_mail):
    user = make_user(lead_coins=5)
    lead = make_lead()

    result = lead_view_service.request_contact_info(db, user, lead.id)

    assert result.remaining_coins == 0
    notification = db.query(Notification).filter(Notification.user_id == user.id).one()
    assert notification.type == "low_balance"
    assert notification.details == {"balance": 0, "threshold": 0}
    assert sent_mail[-1]["template"] == "low_balance.html"


def test_second_lead_after_last_coins_refused(db, make_user, make_lead, coin_costs):
    user = make_user(lead_coins=5)
    lead_view_service.request_contact_info(db, user, make_lead().id)

    with pytest.raises(InsufficientCoins):
        lead_view_service.request_contact_info(db, user, make_lead().id)

    assert ledger_service.get_balance(db, user.id) == 0
    assert len(_views(db, user.id)) == 1


def test_no_warning_above_thresholds(db, make_user, make_lead, coin_costs):
    user = make_user(lead_coins=50)
    lead_view_service.request_contact_info(db, user, make_lead().id)
    assert db.query(Notification).filter(Notification.user_id == user.id).count() == 0


def test_insufficient_coins(db, make_user, make_lead, coin_costs):
    user = make_user(lead_coins=4)
    lead = make_lead()

    with pytest.raises(InsufficientCoins) as exc:
        lead_view_service.request_contact_info(db, user, lead.id)

    assert exc.value.balance == 4
    assert exc.value.required == 5
    assert ledger_service.get_balance(db, user.id) == 4
    assert _views(db, user.id) == []


def test_staff_view_recorded_free(db, make_user, make_lead, coin_costs):
    for staff in (make_user(role="admin", lead_coins=3), make_user(role="subadmin", permissions=[])):
        lead = make_lead()
        result = lead_view_service.request_contact_info(db, staff, lead.id)
        again = lead_view_service.request_contact_info(db, staff, lead.id)

        assert result.to_dict() == again.to_dict()
        assert result.granted is True
        assert result.coins_spent == 0
        assert result.already_viewed is True
        views = _views(db, staff.id)
        assert [v.coins_spent for v in views] == [0]
        assert lead_view_service.has_viewed(db, staff.id, lead.id)
        assert ledger_service.get_balance(db, staff.id) == staff.lead_coins
        assert db.query(CoinTransaction).filter(CoinTransaction.user_id == staff.id).count() == 0


def test_concurrent_first_views_charge_once(make_user, make_lead, coin_costs, make_session, monkeypatch):
    user = make_user(lead_coins=20)
    lead = make_lead()
    winner = make_session()
    lead_view_service.request_contact_info(winner, winner.get(type(user), user.id), lead.id)

    # the second request passed its has_viewed check before the first committed
    monkeypatch.setattr(lead_view_service, "has_viewed", lambda db, user_id, lead_id: False)
    loser = make_session()
    result = lead_view_service.request_contact_info(loser, loser.get(type(user), user.id), lead.id)

    assert result.already_viewed is True
    assert result.coins_spent == 0
    assert result.remaining_coins == 15
    assert loser.query(CoinTransaction).filter(CoinTransaction.user_id == user.id).count() == 1


def test_unknown_lead_and_view_type(db, make_user, make_lead):
    user = make_user(lead_coins=20)
    with pytest.raises(LeadNotFound):
        lead_view_service.request_contact_info(db, user, 9999)
    with pytest.raises(ValidationError):
        lead_view_service.request_contact_info(db, user, make_lead().id, "everything")


def test_costs_created_with_defaults(db):
    setting = lead_view_service.get_settings(db)
    assert (setting.contact_info_cost, setting.detailed_info_cost, setting.full_access_cost) == (5, 10, 15)


# =========================================================
# API
# =========================================================

def test_view_endpoint_unlocks_contact(client, login, db, make_user, make_lead, coin_costs):
    user = make_user(lead_coins=12)
    lead = make_lead(email="owner@client.test")
    login(user)

    detail = client.get(f"/api/leads/{lead.id}").json()
    assert detail["email"] is None
    assert detail["unlocked"] is False

    res = client.post(f"/api/leads/{lead.id}/view")
    assert res.status_code == 200
    assert res.json()["remaining_coins"] == 7

    detail = client.get(f"/api/leads/{lead.id}").json()
    assert detail["email"] == "owner@client.test"
    assert client.get(f"/api/leads/{lead.id}/viewed").json()["viewed"] is True

    listing = client.get("/api/leads").json()
    assert listing["leads"][0]["unlocked"] is True


def test_view_endpoint_insufficient(client, login, db, make_user, make_lead, coin_costs):
    user = make_user(lead_coins=2)
    lead = make_lead()
    login(user)

    res = client.post(f"/api/leads/{lead.id}/view", json={"view_type": "detailed_info"})

    assert res.status_code == 400
    assert res.json()["error"] == "InsufficientCoins"
    db.expire_all()
    assert ledger_service.get_balance(db, user.id) == 2


def test_view_endpoint_unknown_lead(client, login, make_user):
    login(make_user(lead_coins=20))
    res = client.post("/api/leads/9999/view")
    assert res.status_code == 404


def test_costs_endpoint(client, login, make_user, coin_costs):
    login(make_user())
    assert client.get("/api/coins/costs").json() == {"contact_info": 5, "detailed_info": 10, "full_access": 15}


def test_staff_sees_contact_details(client, login, make_user, make_lead):
    lead = make_lead(email="owner@client.test")
    login(make_user(role="subadmin", permissions=[]))
    assert client.get(f"/api/leads/{lead.id}").json()["email"] == "owner@client.test"


def test_staff_view_reported_as_viewed(client, login, make_user, make_lead, coin_costs):
    lead = make_lead()
    login(make_user(role="admin"))
    assert client.get(f"/api/leads/{lead.id}/viewed").json()["viewed"] is False

    res = client.post(f"/api/leads/{lead.id}/view")

    assert res.json()["already_viewed"] is True
    assert res.json()["coins_spent"] == 0
    assert client.get(f"/api/leads/{lead.id}/viewed").json() == {"lead_id": lead.id, "viewed": True}


def test_lead_management_requires_capability(client, login, make_user):
    payload = {"title": "Roof repair", "description": "Leaking roof", "category_name": "Roofing"}

    login(make_user())
    assert client.post("/api/leads", json=payload).status_code == 403

    login(make_user(role="subadmin", permissions=["leads_management"]))
    res = client.post("/api/leads", json=payload)
    assert res.status_code == 200
    assert res.json()["category_name"] == "Roofing"
