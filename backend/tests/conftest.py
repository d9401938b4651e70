import json
import os
import tempfile

# must be set before leadhub.core.config is imported
_DB_DIR = tempfile.mkdtemp(prefix="leadhub-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["SIGNUP_BONUS_COINS"] = "20"
os.environ["LOW_BALANCE_THRESHOLDS"] = "10,5,0"

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from leadhub.core.database import Base, engine, SessionLocal, get_db
from leadhub.core.rate_limit import limiter
from leadhub.main import app
from leadhub.models import (
    User, Subscription, Lead, LeadCategory, LeadCoinSetting, LeadCoinPackage, Coupon,
)
from leadhub.routers.deps import get_current_user
from leadhub.services import mail_service, stripe_service

Base.metadata.create_all(engine)
limiter.enabled = False


class CurrentUser:
    user_id = None


@pytest.fixture(autouse=True)
def clean_tables():
    yield
    with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(autouse=True)
def sent_mail(monkeypatch):
    sent = []

    def fake_send(to_email, subject, template_name, **context):
        sent.append({"to": to_email, "subject": subject, "template": template_name, **context})
        return True

    monkeypatch.setattr(mail_service, "_send", fake_send)
    return sent


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_session():
    """Extra sessions for interleaving two 'requests' by hand"""
    sessions = []

    def factory():
        s = SessionLocal()
        sessions.append(s)
        return s

    yield factory
    for s in sessions:
        s.close()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def factory(role="user", lead_coins=0, permissions=None, status="active", email=None):
        counter["n"] += 1
        user = User(
            email=email or f"{role}{counter['n']}@example.com",
            name=f"{role.title()} {counter['n']}",
            password_hash="not-a-real-hash",
            role=role,
            status=status,
            verified=True,
            permissions=permissions,
            lead_coins=lead_coins,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return factory


@pytest.fixture
def make_plan(db):
    def factory(name="Starter", price=1900, lead_coins=100, duration_days=30, active=True):
        plan = Subscription(
            name=name, price=price, lead_coins=lead_coins, duration_days=duration_days, active=active,
        )
        db.add(plan)
        db.commit()
        db.refresh(plan)
        return plan

    return factory


@pytest.fixture
def make_lead(db):
    def factory(title="Bathroom remodel", email="client@example.com", contact_number="+1 555 0100", category=None):
        lead = Lead(
            title=title,
            description="Full bathroom renovation, two weeks",
            category_id=category.id if category else None,
            work_type="full_time",
            location="Austin, TX",
            email=email,
            contact_number=contact_number,
        )
        db.add(lead)
        db.commit()
        db.refresh(lead)
        return lead

    return factory


@pytest.fixture
def make_coupon(db):
    def factory(code="WELCOME10", coin_amount=10, max_uses=5, active=True):
        coupon = Coupon(code=code, coin_amount=coin_amount, max_uses=max_uses, current_uses=0, active=active)
        db.add(coupon)
        db.commit()
        db.refresh(coupon)
        return coupon

    return factory


@pytest.fixture
def make_package(db):
    def factory(name="Pack 50", lead_coins=50, price=900, active=True):
        package = LeadCoinPackage(name=name, lead_coins=lead_coins, price=price, active=active)
        db.add(package)
        db.commit()
        db.refresh(package)
        return package

    return factory


@pytest.fixture
def coin_costs(db):
    setting = LeadCoinSetting(contact_info_cost=5, detailed_info_cost=10, full_access_cost=15)
    db.add(setting)
    db.commit()
    return setting


@pytest.fixture
def category(db):
    c = LeadCategory(name="Plumbing", active=True)
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


# =========================================================
# HTTP client
# =========================================================

@pytest.fixture
def client(monkeypatch):
    async def always_valid(session_id, token):
        return True

    async def current_user_override(db: Session = Depends(get_db)):
        if CurrentUser.user_id is None:
            return None
        return db.query(User).filter(User.id == CurrentUser.user_id, User.status != "inactive").first()

    monkeypatch.setattr("leadhub.core.csrf.validate_csrf_token", always_valid)
    app.dependency_overrides[get_current_user] = current_user_override
    CurrentUser.user_id = None

    test_client = TestClient(app)
    test_client.cookies.set("session_id", "test-session")
    test_client.headers["X-CSRF-Token"] = "test-token"
    yield test_client

    app.dependency_overrides.clear()
    CurrentUser.user_id = None


@pytest.fixture
def login():
    def _login(user):
        CurrentUser.user_id = user.id if user else None

    return _login


@pytest.fixture
def fake_stripe(monkeypatch):
    """Checkout sessions and webhook events without the Stripe API"""
    state = {"sessions": {}, "counter": 0}

    def create_checkout_session(**kwargs):
        state["counter"] += 1
        session_id = f"cs_test_{state['counter']}"
        state["sessions"][session_id] = {
            "id": session_id,
            "payment_status": "unpaid",
            "status": "open",
            "metadata": dict(kwargs["metadata"]),
            "customer": kwargs.get("customer_id"),
        }
        return {"id": session_id, "url": f"https://checkout.stripe.test/{session_id}"}

    def retrieve_checkout_session(session_id):
        return dict(state["sessions"][session_id])

    def create_customer(email, name, metadata=None):
        return f"cus_{email.split('@')[0]}"

    def construct_webhook_event(payload, sig_header, webhook_secret):
        if sig_header != "valid":
            raise ValueError("No signatures found matching the expected signature for payload")
        return json.loads(payload)

    monkeypatch.setattr(stripe_service, "create_checkout_session", create_checkout_session)
    monkeypatch.setattr(stripe_service, "retrieve_checkout_session", retrieve_checkout_session)
    monkeypatch.setattr(stripe_service, "create_customer", create_customer)
    monkeypatch.setattr(stripe_service, "construct_webhook_event", construct_webhook_event)
    return state
