"""
Pytest configuration and fixtures.
Uses an in-memory SQLite database injected through FastAPI's dependency overrides.
"""
import os

# Set testing environment before importing app
os.environ["TESTING"] = "True"
os.environ["DEBUG"] = "False"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from core.db import Base, get_db
from core import config as core_config
from models.enums import PaymentStatus, PaymentType
from models.mpesa_configuration import MpesaConfiguration
from models.payment_request import PaymentRequest
from models.user import User
from security.password import hash_password
from security import jwt as jwt_utils
from services import email as email_service
from services.mpesa import get_mpesa_client_factory


class FakeMpesaClient:
    """Stands in for MpesaClient; records every STK push it is asked to send."""

    instances = []
    default_reply = {
        "MerchantRequestID": "29115-34620561-1",
        "CheckoutRequestID": "ws_CO_191220191020363925",
        "ResponseCode": "0",
        "ResponseDescription": "Success. Request accepted for processing",
        "CustomerMessage": "Success. Request accepted for processing",
    }
    reply = default_reply
    error = None

    def __init__(self, config):
        self.config = config
        self.pushes = []
        FakeMpesaClient.instances.append(self)

    def stk_push(self, amount, phone_number, reference):
        self.pushes.append({"amount": amount, "phone_number": phone_number, "reference": reference})
        if FakeMpesaClient.error is not None:
            raise FakeMpesaClient.error
        return dict(FakeMpesaClient.reply)


@pytest.fixture(scope="session", autouse=True)
def test_settings():
    core_config.settings.JWT_SECRET = "test-secret"
    core_config.settings.REFRESH_SECRET = "test-refresh"
    core_config.settings.TESTING = True
    core_config.settings.ALLOWED_ORIGIN = "https://kic.example.com"
    core_config.settings.NOTIFICATION_EMAILS_ENABLED = True
    yield


@pytest.fixture()
def db_session_override():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()

    def _get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = _get_db
    try:
        yield db
    finally:
        db.close()
        app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def sent_emails(monkeypatch):
    sent = []

    class _FakeTask:
        @staticmethod
        def delay(to_email, subject, body):
            sent.append({"to": to_email, "subject": subject, "body": body})

    monkeypatch.setattr(email_service, "send_email_task", _FakeTask)
    return sent


@pytest.fixture()
def fake_mpesa():
    FakeMpesaClient.instances = []
    FakeMpesaClient.error = None
    FakeMpesaClient.reply = dict(FakeMpesaClient.default_reply)
    app.dependency_overrides[get_mpesa_client_factory] = lambda: FakeMpesaClient
    yield FakeMpesaClient
    FakeMpesaClient.error = None
    app.dependency_overrides.pop(get_mpesa_client_factory, None)


@pytest.fixture()
def client(db_session_override):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def member(db_session_override):
    user = User(
        first_name="Wanjiru",
        last_name="Kamau",
        email="wanjiru@example.com",
        password_hash=hash_password("testpass123"),
        is_admin=False,
    )
    db_session_override.add(user)
    db_session_override.commit()
    db_session_override.refresh(user)
    return user


@pytest.fixture
def admin(db_session_override):
    user = User(
        first_name="Club",
        last_name="Admin",
        email="admin@example.com",
        password_hash=hash_password("adminpass123"),
        is_admin=True,
    )
    db_session_override.add(user)
    db_session_override.commit()
    db_session_override.refresh(user)
    return user


@pytest.fixture
def auth_headers(member):
    return {"Authorization": f"Bearer {jwt_utils.create_access_token(str(member.id))}"}


@pytest.fixture
def admin_headers(admin):
    return {"Authorization": f"Bearer {jwt_utils.create_access_token(str(admin.id))}"}


@pytest.fixture
def mpesa_config(db_session_override):
    config = MpesaConfiguration(
        business_short_code="174379",
        consumer_key="consumer-key-123",
        consumer_secret="consumer-secret-456",
        passkey="bfb279f9aa9bdbcf158e97dd71a467cd2e0c893059b10f78e6b72ada1ed2c919",
        callback_url="https://kic.example.com/mpesa/callback",
        is_active=True,
    )
    db_session_override.add(config)
    db_session_override.commit()
    db_session_override.refresh(config)
    return config


@pytest.fixture
def payment_request(db_session_override, member):
    payment_request = PaymentRequest(
        id="pr_abc123def456",
        user_id=member.id,
        amount=200,
        phone_number="254712345678",
        payment_type=PaymentType.MEMBERSHIP,
        reference_id="membership-2026",
        status=PaymentStatus.PENDING,
    )
    db_session_override.add(payment_request)
    db_session_override.commit()
    db_session_override.refresh(payment_request)
    return payment_request


@pytest.fixture
def pushed_request(db_session_override, payment_request):
    """A payment request whose STK push Daraja has already accepted."""
    payment_request.checkout_request_id = "ws_CO_191220191020363925"
    payment_request.merchant_request_id = "29115-34620561-1"
    db_session_override.commit()
    return payment_request
