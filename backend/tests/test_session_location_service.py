"""
Tests for session keys, session location tracking and Redis revocation.
"""
import pytest
from datetime import datetime, timedelta, timezone
from redis.exceptions import ConnectionError as RedisConnectionError

from app.services.session_location_service import (
    derive_session_id,
    is_session_revoked,
    purge_stale_session_locations,
    record_session_location,
    revoke_session,
)
from app.services.token_service import create_access_token


class TestDeriveSessionId:

    def test_missing_token(self):
        assert derive_session_id(None) == "unknown"
        assert derive_session_id("") == "unknown"

    def test_opaque_token_prefix(self):
        assert derive_session_id("abcdefghijklmnopqrstuvwxyz") == "abcdefghijklmnopqrst"

    def test_short_token_used_whole(self):
        assert derive_session_id("short") == "short"

    def test_jwt_uses_signature_segment(self):
        token = create_access_token({"user_id": 1})
        session_id = derive_session_id(token)
        assert len(session_id) == 20
        assert token.rsplit(".", 1)[1].startswith(session_id)

    def test_distinct_tokens_get_distinct_ids(self):
        a = create_access_token({"user_id": 1})
        b = create_access_token({"user_id": 1})
        # Shared JWT header prefix must not collapse sessions together
        assert a[:20] == b[:20]
        assert derive_session_id(a) != derive_session_id(b)

    def test_deterministic(self):
        token = create_access_token({"user_id": 7})
        assert derive_session_id(token) == derive_session_id(token)


class TestSessionTracking:

    @pytest.mark.asyncio
    async def test_record_is_idempotent(self, store, kenyan_user):
        for _ in range(2):
            result = await record_session_location(store, kenyan_user.id, "sess-1", "41.90.64.10", "KE", False, 0)
            assert result.ok
        assert await store.count_session_locations(kenyan_user.id, "sess-1") == 1

    @pytest.mark.asyncio
    async def test_purge_uses_default_ttl(self, store, kenyan_user):
        old = datetime.now(timezone.utc) - timedelta(hours=48)
        await store.upsert_session_location(kenyan_user.id, "stale", None, None, False, 50, last_activity=old)
        assert await purge_stale_session_locations(store) == 1


class TestRevocation:

    @pytest.mark.asyncio
    async def test_revoke_writes_blocked_hash_with_ttl(self, mock_redis):
        assert await revoke_session(mock_redis, "sess-1", user_id=3, risk_score=95)

        key = mock_redis.hset.call_args.args[0]
        mapping = mock_redis.hset.call_args.kwargs["mapping"]
        assert key == "session:sess-1"
        assert mapping["risk_level"] == "blocked"
        assert mapping["user_id"] == "3"
        assert mapping["risk_score"] == "95"
        mock_redis.expire.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_revoke_without_redis(self):
        assert await revoke_session(None, "sess-1") is False

    @pytest.mark.asyncio
    async def test_revoke_redis_error_is_contained(self, mock_redis):
        mock_redis.hset.side_effect = RedisConnectionError("down")
        assert await revoke_session(mock_redis, "sess-1") is False

    @pytest.mark.asyncio
    @pytest.mark.parametrize("stored,expected", [(b"blocked", True), ("blocked", True), (b"high", False), (None, False)])
    async def test_is_session_revoked(self, mock_redis, stored, expected):
        mock_redis.hget.return_value = stored
        assert await is_session_revoked(mock_redis, "sess-1") is expected
        mock_redis.hget.assert_awaited_with("session:sess-1", "risk_level")

    @pytest.mark.asyncio
    async def test_lookup_failure_is_not_revoked(self, mock_redis):
        mock_redis.hget.side_effect = RedisConnectionError("down")
        assert await is_session_revoked(mock_redis, "sess-1") is False
