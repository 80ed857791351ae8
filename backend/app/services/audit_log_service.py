from typing import Optional
import logging

from app.models import BlockedAttempt, VerificationEvent
from app.models.verification_event import EventType
from app.services.location_store import LocationStore, WriteResult
from app.services.risk_engine import RiskAssessment

logger = logging.getLogger(__name__)


def _warn_on_failure(result: WriteResult, what: str) -> WriteResult:
    # Operators only: the decision already happened and stands
    if not result.ok:
        logger.warning(f"[Audit] {what} not persisted: {result.error.message if result.error else 'unknown error'}")
    return result


async def log_verification_event(
    store: LocationStore,
    event_type: EventType,
    assessment: RiskAssessment,
    user_id: Optional[int] = None,
    user_agent: Optional[str] = None,
) -> WriteResult:
    event = VerificationEvent(
        user_id=user_id,
        event_type=event_type.value,
        ip_address=assessment.ip_address,
        detected_country=assessment.detected_country,
        registered_country=assessment.registered_country,
        method=assessment.method,
        result=assessment.verified,
        risk_score=assessment.risk_score,
        risk_flags=assessment.flag_values(),
        user_agent=user_agent,
    )
    result = await store.append_verification_event(event)
    return _warn_on_failure(result, f"verification event ({event_type.value})")


async def log_blocked_attempt(
    store: LocationStore,
    attempt_type: EventType,
    assessment: RiskAssessment,
    block_reason: str,
    user_id: Optional[int] = None,
    email: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> WriteResult:
    attempt = BlockedAttempt(
        user_id=user_id,
        email=email,
        ip_address=assessment.ip_address,
        detected_country=assessment.detected_country,
        registered_country=assessment.registered_country,
        attempt_type=attempt_type.value,
        block_reason=block_reason,
        risk_score=assessment.risk_score,
        risk_flags=assessment.flag_values(),
        user_agent=user_agent,
    )
    result = await store.append_blocked_attempt(attempt)
    return _warn_on_failure(result, f"blocked attempt ({attempt_type.value})")
