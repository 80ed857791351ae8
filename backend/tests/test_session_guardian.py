"""
Tests for the per-request location gate and the session location endpoints.
"""
import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from app.database import get_db, get_redis
from app.middlewares.session_guardian import enforce_session_location
from app.models import BlockedAttempt, SessionLocation
from app.services.ip_geolocation import get_ip_resolver

KENYA = {"X-Forwarded-For": "41.90.64.10"}


class TestSessionLocationEndpoint:
    """GET /api/session/location reports without enforcing."""

    def test_no_session(self, client):
        response = client.get("/api/session/location", headers=KENYA)
        assert response.status_code == 200
        assert response.json()["allowed"] is False
        assert response.json()["reason"] == "No active session"

    def test_clean_session(self, client, kenyan_user, auth_headers):
        response = client.get("/api/session/location", headers={**KENYA, **auth_headers(kenyan_user)})
        data = response.json()
        assert data["allowed"] is True
        assert data["risk_score"] == 0
        assert data["requires_action"] == "none"

    def test_high_risk_session_reported(self, client, kenyan_user, auth_headers, resolver):
        resolver.country_code = "NG"
        resolver.is_vpn = True
        response = client.get("/api/session/location", headers={**KENYA, **auth_headers(kenyan_user)})
        assert response.status_code == 200
        assert response.json()["allowed"] is False
        assert response.json()["requires_action"] == "block"


class TestCurrentSessionEndpoint:
    """GET /api/session/current sits behind the location gate."""

    def test_returns_snapshot_and_headers(self, client, kenyan_user, auth_headers):
        response = client.get("/api/session/current", headers={**KENYA, **auth_headers(kenyan_user)})

        assert response.status_code == 200, response.text
        assert response.json()["country_code"] == "KE"
        assert response.json()["user_id"] == kenyan_user.id
        assert response.headers["X-Location-Risk-Score"] == "0"
        assert response.headers["X-Location-Action"] == "none"

    def test_monitor_header_when_travelling(self, client, kenyan_user, auth_headers, resolver):
        resolver.country_code = "US"
        response = client.get("/api/session/current", headers={"X-Forwarded-For": "8.8.8.8", **auth_headers(kenyan_user)})
        assert response.status_code == 200
        assert response.headers["X-Location-Action"] == "monitor"
        assert response.headers["X-Location-Risk-Score"] == "50"

    def test_blocked_session_gets_403(self, client, kenyan_user, auth_headers, resolver, test_db_session):
        resolver.country_code = "NG"
        resolver.is_vpn = True
        response = client.get("/api/session/current", headers={"X-Forwarded-For": "102.89.32.7", **auth_headers(kenyan_user)})

        assert response.status_code == 403
        detail = response.json()["detail"]
        assert detail["code"] == "LOCATION_VERIFICATION_FAILED"
        assert detail["requires_action"] == "block"
        assert test_db_session.query(BlockedAttempt).count() == 1
        # Snapshot is still written for the blocked request
        assert test_db_session.query(SessionLocation).count() == 1

    def test_revoked_session_gets_403(self, client, kenyan_user, auth_headers, mock_redis):
        mock_redis.hget.return_value = b"blocked"
        response = client.get("/api/session/current", headers={**KENYA, **auth_headers(kenyan_user)})
        assert response.status_code == 403

    def test_missing_token_is_401(self, client):
        assert client.get("/api/session/current", headers=KENYA).status_code == 401


class TestEnforceSessionLocation:
    """The gate as a plain dependency on an arbitrary app."""

    @pytest.fixture
    def gated_client(self, test_db_session, mock_redis, resolver):
        app = FastAPI()

        @app.get("/api/protected")
        async def protected(result=Depends(enforce_session_location)):
            return {"ok": True}

        @app.post("/api/auth/signin")
        async def signin(result=Depends(enforce_session_location)):
            return {"gate": result}

        async def override_get_db():
            yield test_db_session

        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_redis] = lambda: mock_redis
        app.dependency_overrides[get_ip_resolver] = lambda: resolver
        return TestClient(app)

    def test_auth_paths_are_exempt(self, gated_client, resolver):
        response = gated_client.post("/api/auth/signin")
        assert response.status_code == 200
        assert response.json() == {"gate": None}
        assert resolver.calls == []

    def test_anonymous_request_is_401(self, gated_client):
        assert gated_client.get("/api/protected", headers=KENYA).status_code == 401

    def test_fails_open_on_internal_error(self, gated_client, kenyan_user, auth_headers):
        from unittest.mock import AsyncMock, patch

        with patch("app.services.location_store.LocationStore.get_user", AsyncMock(side_effect=RuntimeError("db down"))):
            response = gated_client.get("/api/protected", headers={**KENYA, **auth_headers(kenyan_user)})
        assert response.status_code == 200
        assert response.headers["X-Location-Action"] == "monitor"
        assert "X-Location-Risk-Score" not in response.headers
