from leadhub.models import CoinTransaction
from leadhub.services import auth_service, ledger_service


def test_verification_pays_signup_bonus_once(db, make_user):
    user = make_user(status="pending")
    user.verified = False
    db.commit()

    auth_service.mark_verified(db, user)
    auth_service.mark_verified(db, user)

    assert user.status == "active"
    assert user.verified is True
    assert ledger_service.get_balance(db, user.id) == 20
    tx = db.query(CoinTransaction).filter(CoinTransaction.user_id == user.id).one()
    assert tx.reference == f"signup:{user.id}"


def test_staff_get_no_signup_bonus(db, make_user):
    sub = make_user(role="subadmin")
    assert auth_service.grant_signup_bonus(db, sub) is None
    assert ledger_service.get_balance(db, sub.id) == 0


def test_password_hashing():
    hashed = auth_service.hash_password("Str0ng-pass")
    assert auth_service.verify_password("Str0ng-pass", hashed)
    assert not auth_service.verify_password("wrong", hashed)


def test_create_user_normalizes(db):
    user = auth_service.create_user(
        db, "  Mixed@Example.COM ", "Str0ng-pass", "Mixed", role="subadmin",
        permissions=["leads_management", "coin_management"],
    )
    assert user.email == "mixed@example.com"
    assert user.permissions == ["leads_management"]
    assert auth_service.get_user_by_email(db, "MIXED@example.com").id == user.id
