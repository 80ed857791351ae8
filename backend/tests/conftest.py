"""
Test configuration and fixtures for the location risk engine tests.
"""
import os

# Set test environment BEFORE any imports
os.environ["ENVIRONMENT"] = "test"
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-key-for-testing-only-0123456789")
os.environ["RATE_LIMIT_ENABLED"] = "0"
os.environ["PASSWORD_HASH_ITERATIONS"] = "1000"
# No Postgres, Redis or GeoLite2 in tests; every backend is injected below
os.environ.pop("POSTGRES_URI", None)
os.environ.pop("REDIS_URI", None)
os.environ["GEOIP2_CITY_DB"] = "/nonexistent/GeoLite2-City.mmdb"
os.environ["GEOIP2_ASN_DB"] = "/nonexistent/GeoLite2-ASN.mmdb"

import pytest
from typing import Any, Dict, Optional
from unittest.mock import AsyncMock

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.database import get_db, get_redis
from app.main import app
from app.models import Base, User
from app.services.ip_geolocation import IpSignal, get_ip_resolver
from app.services.location_store import LocationStore
from app.services.password_service import hash_password
from app.services.token_service import create_access_token


class StaticResolver:
    """Resolver double returning a fixed country for every routable IP."""

    def __init__(self, country_code: Optional[str] = None, is_vpn: bool = False, is_suspicious: bool = False):
        self.country_code = country_code
        self.is_vpn = is_vpn
        self.is_suspicious = is_suspicious
        self.calls = []

    async def resolve(self, ip):
        self.calls.append(ip)
        if not ip:
            return IpSignal(ip=None, error="no_ip_address")
        return IpSignal(
            ip=ip,
            country_code=self.country_code,
            is_vpn=self.is_vpn,
            is_suspicious=self.is_suspicious,
            source="static",
            error=None if self.country_code else "geolocation_unavailable",
        )


class ExplodingResolver:
    """Resolver double whose lookup raises something unexpected."""

    async def resolve(self, ip):
        raise RuntimeError("resolver crashed")


@pytest.fixture(scope="function")
def test_engine():
    """Create a fresh in-memory SQLite database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def test_db_session(test_engine):
    """Create a test database session."""
    SessionLocal = sessionmaker(bind=test_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def store(test_db_session) -> LocationStore:
    return LocationStore(test_db_session)


@pytest.fixture
def mock_redis():
    """Mock Redis client."""
    mock_client = AsyncMock()
    mock_client.get.return_value = None
    mock_client.hget.return_value = None
    mock_client.setex.return_value = True
    mock_client.hset.return_value = 1
    mock_client.expire.return_value = True
    mock_client.ping.return_value = True
    return mock_client


@pytest.fixture
def resolver() -> StaticResolver:
    """Kenyan, non-VPN resolver by default; tests mutate it as needed."""
    return StaticResolver("KE")


@pytest.fixture
def kenyan_user(test_db_session) -> User:
    user = User(
        name="Amina Wanjiru",
        email="amina@example.com",
        phone="+254712345678",
        country="KE",
        password_hash=hash_password("correct-horse-battery"),
        role="borrower",
    )
    test_db_session.add(user)
    test_db_session.commit()
    test_db_session.refresh(user)
    return user


@pytest.fixture
def admin_user(test_db_session) -> User:
    user = User(
        name="Ops Admin",
        email="admin@example.com",
        phone=None,
        country="KE",
        password_hash=hash_password("admin-password-1"),
        role="admin",
    )
    test_db_session.add(user)
    test_db_session.commit()
    test_db_session.refresh(user)
    return user


def bearer_for(user: User) -> Dict[str, str]:
    token = create_access_token({"user_id": user.id, "email": user.email, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth_headers():
    """Factory: Authorization header carrying a fresh access token for a user."""
    return bearer_for


@pytest.fixture
def make_resolver():
    return StaticResolver


@pytest.fixture
def exploding_resolver() -> ExplodingResolver:
    return ExplodingResolver()


@pytest.fixture
def client(test_db_session, mock_redis, resolver):
    """TestClient wired to the SQLite session, the Redis mock and the static resolver."""

    async def override_get_db():
        yield test_db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = lambda: mock_redis
    app.dependency_overrides[get_ip_resolver] = lambda: resolver
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def signup_payload() -> Dict[str, Any]:
    return {
        "name": "Kofi Mensah",
        "email": "kofi@example.com",
        "phone": "+254798765432",
        "password": "a-long-password",
    }
