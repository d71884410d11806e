import os
os.environ.setdefault('DATABASE_URL', 'sqlite://')

import hashlib
import hmac
from decimal import Decimal

import pytest
import razorpay
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from monetra_svc.app import app
from monetra_svc.config import Settings, get_settings
from monetra_svc.models.base import Base, get_db
from monetra_svc.models import expense, membership, user  # noqa: F401
from monetra_svc.models.membership import MembershipPlan
from monetra_svc.models.user import User
from monetra_svc.razorpay_integration import RazorpayIntegration, get_gateway
from monetra_svc.security import create_access_token
from monetra_svc.seeder import seed_membership_plans

TEST_SETTINGS = Settings(
    database_url='sqlite://',
    jwt_secret='test-jwt-secret',
    razorpay_key_id='rzp_test_key',
    razorpay_key_secret='key_secret_test',
    razorpay_webhook_secret='webhook_secret_test',
    gateway_max_retries=3,
)


class FakeOrderApi:
    """Stands in for ``razorpay.Client().order``."""

    def __init__(self):
        self.calls = []
        self.errors = []

    def create(self, data, **kwargs):
        self.calls.append({"data": data, "kwargs": kwargs})
        if self.errors:
            raise self.errors.pop(0)
        return {
            "id": f"order_gw_{len(self.calls)}",
            "entity": "order",
            "amount": data["amount"],
            "currency": data["currency"],
            "receipt": data["receipt"],
            "notes": data["notes"],
            "status": "created",
        }


class FakeRazorpayClient:
    def __init__(self):
        self.auth = (TEST_SETTINGS.razorpay_key_id, TEST_SETTINGS.razorpay_key_secret)
        self.order = FakeOrderApi()
        self.utility = razorpay.Utility(self)


@pytest.fixture
def engine():
    engine = create_engine(
        'sqlite://',
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(engine):
    TestingSession = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def settings():
    return TEST_SETTINGS


@pytest.fixture
def razorpay_client():
    return FakeRazorpayClient()


@pytest.fixture
def gateway(razorpay_client):
    return RazorpayIntegration(TEST_SETTINGS, client=razorpay_client, retry_delay=0)


@pytest.fixture
def client(db_session, gateway):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: TEST_SETTINGS
    app.dependency_overrides[get_gateway] = lambda: gateway
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def plans(db_session):
    seed_membership_plans(db_session)
    return {plan.id: plan for plan in db_session.query(MembershipPlan).all()}


@pytest.fixture
def monthly_plan(db_session):
    plan = MembershipPlan(id='lite_monthly', tier='pro', price=Decimal('49.00'), tenure='monthly')
    db_session.add(plan)
    db_session.commit()
    return plan


def make_user(db, email='user@example.com', password='not-a-real-hash'):
    account = User(email=email, password=password)
    db.add(account)
    db.commit()
    db.refresh(account)
    return account


@pytest.fixture
def test_user(db_session):
    return make_user(db_session)


def auth_headers(account):
    return {"Authorization": f"Bearer {create_access_token(account.id, TEST_SETTINGS)}"}


def sign(payload, secret):
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def client_signature(gateway_order_id, payment_id, secret=TEST_SETTINGS.razorpay_key_secret):
    return sign(f"{gateway_order_id}|{payment_id}", secret)
