import pytest

from leadhub.core.errors import AlreadyRedeemed, CouponExhausted, CouponNotFound, ValidationError
from leadhub.models import Coupon, CouponClaim, CoinTransaction
from leadhub.services import coupon_service, ledger_service


def test_redeem_credits_once(db, make_user, make_coupon):
    user = make_user(lead_coins=3)
    coupon = make_coupon(code="WELCOME10", coin_amount=10)

    result = coupon_service.redeem(db, "WELCOME10", user.id)
    assert result.to_dict() == {"coins_granted": 10, "new_balance": 13}

    with pytest.raises(AlreadyRedeemed):
        coupon_service.redeem(db, "WELCOME10", user.id)

    db.refresh(coupon)
    assert coupon.current_uses == 1
    assert ledger_service.get_balance(db, user.id) == 13
    tx = db.query(CoinTransaction).filter(CoinTransaction.user_id == user.id).one()
    assert tx.reference == f"coupon:{coupon.id}:{user.id}"


def test_code_is_case_insensitive(db, make_user, make_coupon):
    user = make_user()
    make_coupon(code="SPRING-2024", coin_amount=25)
    assert coupon_service.redeem(db, "  spring-2024 ", user.id).coins_granted == 25


def test_unknown_and_inactive_codes(db, make_user, make_coupon):
    user = make_user()
    make_coupon(code="OFF", active=False)

    for code in ("NOPE", "OFF", "", "   "):
        with pytest.raises(CouponNotFound):
            coupon_service.redeem(db, code, user.id)
    assert ledger_service.get_balance(db, user.id) == 0


def test_exhausted_coupon(db, make_user, make_coupon):
    coupon = make_coupon(code="ONCE", max_uses=1)
    coupon_service.redeem(db, "ONCE", make_user().id)

    late = make_user()
    with pytest.raises(CouponExhausted):
        coupon_service.redeem(db, "ONCE", late.id)

    db.refresh(coupon)
    assert coupon.current_uses == 1
    assert ledger_service.get_balance(db, late.id) == 0


def test_last_use_race_stays_within_limit(make_user, make_coupon, make_session):
    coupon = make_coupon(code="LAST", max_uses=1, coin_amount=10)
    alice, bob = make_user(), make_user()
    first, second = make_session(), make_session()

    # both requests have loaded the coupon with one use left
    assert first.get(Coupon, coupon.id).current_uses == 0
    assert second.get(Coupon, coupon.id).current_uses == 0

    coupon_service.redeem(first, "LAST", alice.id)
    with pytest.raises(CouponExhausted):
        coupon_service.redeem(second, "LAST", bob.id)

    second.expire_all()
    assert second.get(Coupon, coupon.id).current_uses == 1
    assert second.query(CouponClaim).count() == 1
    assert ledger_service.get_balance(second, bob.id) == 0


def test_claim_from_another_session_blocks_repeat(make_user, make_coupon, make_session):
    make_coupon(code="TWICE", max_uses=5, coin_amount=10)
    user = make_user()
    first, second = make_session(), make_session()

    coupon_service.redeem(first, "TWICE", user.id)
    with pytest.raises(AlreadyRedeemed):
        coupon_service.redeem(second, "TWICE", user.id)

    assert ledger_service.get_balance(second, user.id) == 10


def test_create_coupon_generates_code(db, make_user):
    admin = make_user(role="admin")
    coupon = coupon_service.create_coupon(db, coin_amount=15, max_uses=100, created_by=admin)

    groups = coupon.code.split("-")
    assert len(groups) == 3
    assert all(len(g) == 4 and g.isalnum() and g == g.upper() for g in groups)
    assert coupon.current_uses == 0
    assert coupon.active is True


def test_create_coupon_explicit_code_unique(db, make_user):
    admin = make_user(role="admin")
    coupon = coupon_service.create_coupon(db, 10, 5, admin, code="summer")
    assert coupon.code == "SUMMER"

    with pytest.raises(ValidationError):
        coupon_service.create_coupon(db, 10, 5, admin, code="Summer")
    with pytest.raises(ValidationError):
        coupon_service.create_coupon(db, 0, 5, admin)


# =========================================================
# API
# =========================================================

def test_claim_endpoint(client, login, make_user, make_coupon):
    user = make_user()
    make_coupon(code="HELLO", coin_amount=8)
    login(user)

    res = client.post("/api/coupons/claim", json={"code": "hello"})
    assert res.status_code == 200
    assert res.json() == {"coins_granted": 8, "new_balance": 8}

    res = client.post("/api/coupons/HELLO/redeem")
    assert res.status_code == 400
    assert res.json()["error"] == "AlreadyRedeemed"


def test_claim_unknown_code(client, login, make_user):
    login(make_user())
    res = client.post("/api/coupons/claim", json={"code": "MISSING"})
    assert res.status_code == 404
    assert res.json()["error"] == "CouponNotFound"


def test_admin_coupon_management(client, login, make_user):
    admin = make_user(role="admin")
    user = make_user()
    login(admin)

    res = client.post("/api/admin/coupons", json={"coin_amount": 20, "max_uses": 2, "code": "vip-2024"})
    assert res.status_code == 200
    coupon = res.json()
    assert coupon["code"] == "VIP-2024"

    login(user)
    assert client.post("/api/coupons/claim", json={"code": "VIP-2024"}).status_code == 200

    login(admin)
    claims = client.get(f"/api/admin/coupons/{coupon['id']}/claims").json()
    assert [c["user_id"] for c in claims] == [user.id]

    res = client.put(f"/api/admin/coupons/{coupon['id']}/active", json={"active": False})
    assert res.json()["active"] is False


def test_admin_coupons_forbidden_for_subadmin(client, login, make_user):
    login(make_user(role="subadmin", permissions=["user_management", "leads_management"]))
    assert client.get("/api/admin/coupons").status_code == 403
