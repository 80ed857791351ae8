from datetime import datetime, timedelta, timezone
from typing import Optional
import logging
import os

from redis.exceptions import RedisError

from app.services.location_store import LocationStore, WriteResult

logger = logging.getLogger(__name__)

SESSION_ID_LENGTH = 20
SESSION_LOCATION_TTL_HOURS = int(os.getenv("SESSION_LOCATION_TTL_HOURS", "24"))
SESSION_REVOCATION_TTL_SEC = int(os.getenv("SESSION_REVOCATION_TTL_SEC", "3600"))


def derive_session_id(token: Optional[str]) -> str:
    """Deterministic session key: the first 20 characters of the credential.

    For a JWT the prefix is taken from the signature segment, since every
    token signed with the same algorithm shares its header prefix. Distinct
    credentials sharing a 20-character prefix collide; at 20 base64url
    characters that is accepted.
    """
    if not token:
        return "unknown"
    segment = token.rsplit(".", 1)[-1] if token.count(".") == 2 else token
    return segment[:SESSION_ID_LENGTH] or "unknown"


async def record_session_location(
    store: LocationStore,
    user_id: int,
    session_id: str,
    ip_address: Optional[str],
    country_code: Optional[str],
    is_vpn: bool,
    risk_score: int,
) -> WriteResult:
    """Idempotent last-write-wins upsert of the session's location snapshot."""
    result = await store.upsert_session_location(
        user_id=user_id,
        session_id=session_id,
        ip_address=ip_address,
        country_code=country_code,
        is_vpn=is_vpn,
        risk_score=risk_score,
    )
    if not result.ok:
        logger.warning(f"[SessionLocation] Failed to track session {session_id} for user {user_id}: {result.error.message}")
    return result


async def purge_stale_session_locations(store: LocationStore, max_age: Optional[timedelta] = None) -> int:
    max_age = max_age or timedelta(hours=SESSION_LOCATION_TTL_HOURS)
    removed = await store.purge_session_locations(max_age)
    logger.info(f"[SessionLocation] Purged {removed} snapshots idle for more than {max_age}")
    return removed


# ----------------------
# Session invalidation (Redis)
# ----------------------

def _session_key(session_id: str) -> str:
    return f"session:{session_id}"


async def revoke_session(redis, session_id: str, user_id: Optional[int] = None, risk_score: Optional[int] = None) -> bool:
    """Mark a session as blocked so every later request on it is refused."""
    if redis is None:
        logger.warning(f"[SessionLocation] Redis not configured; session {session_id} not revoked")
        return False
    state = {
        "user_id": str(user_id) if user_id is not None else "",
        "risk_level": "blocked",
        "risk_score": str(risk_score) if risk_score is not None else "",
        "updated_at": datetime.now(timezone.utc).isoformat(),
    }
    try:
        await redis.hset(_session_key(session_id), mapping=state)
        await redis.expire(_session_key(session_id), SESSION_REVOCATION_TTL_SEC)
    except RedisError as e:
        logger.warning(f"[SessionLocation] Failed to revoke session {session_id}: {e}")
        return False
    return True


async def is_session_revoked(redis, session_id: str) -> bool:
    if redis is None:
        return False
    try:
        level = await redis.hget(_session_key(session_id), "risk_level")
    except RedisError as e:
        logger.warning(f"[SessionLocation] Revocation lookup failed for {session_id}: {e}")
        return False
    if isinstance(level, bytes):
        level = level.decode()
    return level == "blocked"
