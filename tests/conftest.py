import os
import re

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("FERNET_KEY", "MDEyMzQ1Njc4OWFiY2RlZjAxMjM0NTY3ODlhYmNkZWY=")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "rzp_test_secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from examprep.main import app
from examprep.core.database import Base, get_db
from examprep.core.exceptions import EmailDeliveryError, GatewayUnavailable
from examprep.core.gateway import RazorpayGateway, compute_signature, get_gateway
from examprep.core.mailer import Mailer, get_mailer
from examprep.core.security import hash_password
from examprep.models.batch import Batch
from examprep.models.identity import Identity

GATEWAY_SECRET = "rzp_test_secret"


class FakeMailer(Mailer):
    def __init__(self):
        super().__init__(api_url="http://mail.invalid", api_key="test")
        self.sent = []
        self.fail = False

    def send(self, to, subject, text_body, html_body):
        if self.fail:
            raise EmailDeliveryError()
        self.sent.append({"to": to, "subject": subject, "text": text_body, "html": html_body})
        return f"msg_{len(self.sent)}"

    def last_code(self, email=None):
        messages = [m for m in self.sent if email is None or m["to"] == email]
        return re.search(r"\b(\d{6})\b", messages[-1]["text"]).group(1)


class FakeGateway(RazorpayGateway):
    def __init__(self):
        super().__init__(key_id="rzp_test_key", key_secret=GATEWAY_SECRET, api_url="http://gateway.invalid")
        self.orders = []
        self.unavailable = False

    def create_order(self, amount_minor_units, currency, receipt, notes):
        if self.unavailable:
            raise GatewayUnavailable()
        order_id = f"order_{len(self.orders) + 1:04d}"
        self.orders.append({"id": order_id, "amount": amount_minor_units, "receipt": receipt, "notes": notes})
        return {"orderId": order_id, "amount": amount_minor_units, "currency": currency}

    @staticmethod
    def sign(order_id, payment_id):
        return compute_signature(order_id, payment_id, GATEWAY_SECRET)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(session_factory, mailer, gateway):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_identity(db):
    def _make(email, role="student", password="secret1", **fields):
        identity = Identity(
            id=fields.pop("id", None) or f"{role}-{email}",
            email=email.lower(),
            role=role,
            password_hash=hash_password(password),
            **fields,
        )
        db.add(identity)
        db.commit()
        db.refresh(identity)
        return identity
    return _make


@pytest.fixture
def make_batch(db):
    def _make(name="JEE Advanced 2027", fees=999, **fields):
        batch = Batch(name=name, fees=fees, **{"category": "JEE", "class_type": "11th", **fields})
        db.add(batch)
        db.commit()
        db.refresh(batch)
        return batch
    return _make


@pytest.fixture
def login(client):
    def _login(email, password="secret1", role="student"):
        response = client.post(f"/api/v1/auth/{role}/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['access_token']}"}
    return _login
