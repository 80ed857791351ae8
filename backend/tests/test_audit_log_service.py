"""
Tests for audit log service functionality.
"""
import logging
import pytest
from app.models import BlockedAttempt, EventType, VerificationEvent
from app.services.audit_log_service import log_blocked_attempt, log_verification_event
from app.services.ip_geolocation import IpSignal
from app.services.location_store import LocationStore
from app.services.risk_engine import score_location


@pytest.fixture
def mismatch_vpn():
    return score_location(IpSignal(ip="102.89.32.7", country_code="NG", is_vpn=True), "KE")


class TestAuditLogService:
    """Test cases for audit log service."""

    @pytest.mark.asyncio
    async def test_log_verification_event_success(self, store, test_db_session, kenyan_user, mismatch_vpn):
        """A verification event mirrors the assessment it records."""
        result = await log_verification_event(
            store, EventType.login, mismatch_vpn, user_id=kenyan_user.id, user_agent="pytest"
        )

        assert result.ok
        event = test_db_session.query(VerificationEvent).one()
        assert event.user_id == kenyan_user.id
        assert event.event_type == "login"
        assert event.ip_address == "102.89.32.7"
        assert event.detected_country == "NG"
        assert event.registered_country == "KE"
        assert event.method == "ip"
        assert event.result is False
        assert event.risk_score == 90
        assert event.risk_flags == ["country_mismatch", "vpn_detected"]
        assert event.user_agent == "pytest"

    @pytest.mark.asyncio
    async def test_log_verification_event_without_user(self, store, test_db_session, mismatch_vpn):
        """Rejected signups have no account id."""
        result = await log_verification_event(store, EventType.signup, mismatch_vpn)
        assert result.ok
        assert test_db_session.query(VerificationEvent).one().user_id is None

    @pytest.mark.asyncio
    async def test_log_blocked_attempt_success(self, store, test_db_session, mismatch_vpn):
        result = await log_blocked_attempt(
            store, EventType.signup, mismatch_vpn, "Signup blocked", email="kofi@example.com"
        )

        assert result.ok
        attempt = test_db_session.query(BlockedAttempt).one()
        assert attempt.attempt_type == "signup"
        assert attempt.block_reason == "Signup blocked"
        assert attempt.email == "kofi@example.com"
        assert attempt.risk_score == 90
        assert attempt.detected_country == "NG"

    @pytest.mark.asyncio
    async def test_unconfigured_storage_returns_failure(self, mismatch_vpn, caplog):
        """Storage errors come back as a WriteResult and are logged, never raised."""
        with caplog.at_level(logging.WARNING, logger="app.services.audit_log_service"):
            result = await log_verification_event(LocationStore(None), EventType.session_check, mismatch_vpn)

        assert not result.ok
        assert result.error.code == "AUDIT_WRITE_FAILURE"
        assert "not persisted" in caplog.text

    @pytest.mark.asyncio
    async def test_blocked_attempt_failure_returns_failure(self, mismatch_vpn):
        result = await log_blocked_attempt(LocationStore(None), EventType.login, mismatch_vpn, "blocked")
        assert not result.ok
