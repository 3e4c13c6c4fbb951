"""Pytest fixtures for the checkout / payment API."""

import json
import os
import uuid
from datetime import datetime, timezone
from decimal import Decimal

# Settings are read at import time; configure them before importing app.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from app.core.errors import AuthenticationFailure
from app.core.payment_provider import get_payment_provider
from app.database import get_session
from app.main import app
from app.models.cart import CartItem
from app.models.kit import Course, Kit
from app.models.user import User
from app.schemas.payment import PaymentEvent, PaymentSession

VALID_SIGNATURE = "t=1,v1=valid"


class FakePaymentProvider:
    """In-memory stand-in for the Stripe adapter."""

    def __init__(self):
        self.sessions: dict[str, PaymentSession] = {}
        self.created_requests: list[dict] = []

    def create_checkout_session(self, line_items, success_url, cancel_url, metadata):
        self.created_requests.append(
            {
                "line_items": line_items,
                "success_url": success_url,
                "cancel_url": cancel_url,
                "metadata": metadata,
            }
        )
        amount = sum(li["price_data"]["unit_amount"] * li["quantity"] for li in line_items)
        return self.add_session(amount_total=amount, metadata=metadata, payment_status="unpaid")

    def add_session(self, amount_total, metadata, payment_status="paid", created=None):
        session_id = f"cs_test_{uuid.uuid4().hex}"
        payment_session = PaymentSession(
            id=session_id,
            payment_status=payment_status,
            amount_total=amount_total,
            currency="inr",
            metadata=metadata,
            created=created or datetime.now(timezone.utc),
            url=f"https://checkout.test/{session_id}",
        )
        self.sessions[session_id] = payment_session
        return payment_session

    def mark_paid(self, session_id):
        paid = self.sessions[session_id].model_copy(update={"payment_status": "paid"})
        self.sessions[session_id] = paid
        return paid

    def get_session(self, session_id):
        return self.sessions.get(session_id)

    def construct_event(self, payload, signature_header):
        if signature_header != VALID_SIGNATURE:
            raise AuthenticationFailure()
        data = json.loads(payload)
        obj = data["data"]["object"]
        return PaymentEvent(
            id=data["id"],
            type=data["type"],
            session=PaymentSession.from_payload(obj) if "id" in obj else None,
        )


def webhook_body(payment_session: PaymentSession, event_type="checkout.session.completed") -> str:
    return json.dumps(
        {
            "id": f"evt_{uuid.uuid4().hex}",
            "type": event_type,
            "data": {
                "object": {
                    "id": payment_session.id,
                    "object": "checkout.session",
                    "payment_status": payment_session.payment_status,
                    "amount_total": payment_session.amount_total,
                    "currency": payment_session.currency,
                    "metadata": payment_session.metadata,
                    "created": int(payment_session.created.timestamp()),
                }
            },
        }
    )


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def provider():
    return FakePaymentProvider()


@pytest.fixture
def client(session, provider):
    def _get_session():
        yield session

    app.dependency_overrides[get_session] = _get_session
    app.dependency_overrides[get_payment_provider] = lambda: provider
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session):
    def _make_user(role="user"):
        user_id = uuid.uuid4()
        user = User(id=user_id, email=f"{user_id.hex[:8]}@example.com", name="tester", role=role)
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(role="admin")


def auth_headers(user: User) -> dict[str, str]:
    token = jwt.encode(
        {"sub": str(user.id), "email": user.email},
        "test-jwt-secret",
        algorithm="HS256",
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_course(session):
    def _make_course(name="Robotics 101"):
        course = Course(name=name)
        session.add(course)
        session.commit()
        session.refresh(course)
        return course

    return _make_course


@pytest.fixture
def make_kit(session):
    def _make_kit(price="50.00", stock=10, course=None, name=None):
        kit = Kit(
            name=name or f"Kit {uuid.uuid4().hex[:6]}",
            sku=f"SKU-{uuid.uuid4().hex[:10]}",
            price=Decimal(price),
            stock_quantity=stock,
            course_id=course.id if course else None,
        )
        session.add(kit)
        session.commit()
        session.refresh(kit)
        return kit

    return _make_kit


@pytest.fixture
def fill_cart(session):
    def _fill_cart(user, *lines):
        for kit, quantity in lines:
            session.add(CartItem(user_id=user.id, kit_id=kit.id, quantity=quantity))
        session.commit()

    return _fill_cart


@pytest.fixture
def file_engine(tmp_path):
    """On-disk SQLite, for tests that need more than one connection."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'educomm.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()
