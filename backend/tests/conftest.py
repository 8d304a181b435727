"""
Shared fixtures.

Tests run against an in-memory SQLite database; settings are read at import
time, so the environment is set before any vendorhub module is imported.
"""
import hashlib
import hmac
import os
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("JWT_AUDIENCE", "")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_123")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")
os.environ.setdefault("APP_BASE_URL", "https://app.example.com")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

import pytest

from vendorhub import models  # noqa: F401  registers tables on Base.metadata
from vendorhub.lib.db import Base, SessionLocal, engine
from vendorhub.lib.jwt import Principal, create_access_token
from vendorhub.lib.metrics import get_metrics_collector
from vendorhub.lib.settings import settings
from vendorhub.models.listings import Listing, ListingCategory, SubscriptionPlan
from vendorhub.models.users import User, UserRole


@pytest.fixture(autouse=True)
def database():
    """Fresh schema for every test."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def metrics():
    collector = get_metrics_collector()
    collector.reset()
    yield collector
    collector.reset()


@pytest.fixture
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db_session) -> Callable[..., Principal]:
    """Create a user row and return its Principal."""

    def _make(role: UserRole = UserRole.CONSUMER, email: Optional[str] = None) -> Principal:
        user_id = uuid.uuid4()
        email = email or f"{role.value}-{user_id.hex[:8]}@example.com"
        db_session.add(User(id=user_id, email=email, role=role))
        db_session.commit()
        return Principal(user_id=user_id, role=role, email=email)

    return _make


@pytest.fixture
def supplier(make_user) -> Principal:
    return make_user(UserRole.SUPPLIER)


@pytest.fixture
def consumer(make_user) -> Principal:
    return make_user(UserRole.CONSUMER)


@pytest.fixture
def make_listing(db_session) -> Callable[..., Listing]:
    """Create a listing owned by `owner`."""

    def _make(
        owner: Principal,
        name: str = "Golden Hour Photography",
        category: ListingCategory = ListingCategory.PHOTOGRAPHY,
        plan: SubscriptionPlan = SubscriptionPlan.NONE,
        end_date: Optional[datetime] = None,
        created_at: Optional[datetime] = None,
        **fields,
    ) -> Listing:
        if plan != SubscriptionPlan.NONE and end_date is None:
            end_date = datetime.now(timezone.utc) + timedelta(days=30)
        listing = Listing(
            owner_id=owner.user_id,
            name=name,
            category=category,
            subscription_plan=plan,
            subscription_end_date=end_date,
            created_at=created_at or datetime.now(timezone.utc),
            **fields,
        )
        db_session.add(listing)
        db_session.commit()
        return listing

    return _make


@pytest.fixture
def listing(make_listing, supplier) -> Listing:
    return make_listing(supplier)


def auth_headers(principal: Principal) -> Dict[str, str]:
    token = create_access_token(str(principal.user_id), principal.role.value, email=principal.email)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers_for() -> Callable[[Principal], Dict[str, str]]:
    return auth_headers


def webhook_signature_header(
    payload: bytes,
    secret: Optional[str] = None,
    timestamp: Optional[int] = None,
) -> str:
    """Stripe-Signature header for `payload`, signed the way the processor signs deliveries."""
    secret = secret or settings.stripe_webhook_secret
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.".encode("utf-8") + payload
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


@pytest.fixture
def sign_webhook() -> Callable[..., str]:
    return webhook_signature_header
