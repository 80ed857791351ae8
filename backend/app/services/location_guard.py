"""
Signup, signin and per-request session pipelines.

Each pipeline is: collect signals -> score -> decide -> side-effect writes.
Writes are best effort and never undo a decision. Failure handling differs on
purpose: signup and signin fail closed when scoring breaks
(``LocationCheckUnavailable``), session checks fail open.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Optional
import logging

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError

from app.exceptions import (
    InvalidPhoneNumber,
    LocationCheckUnavailable,
    PolicyBlock,
    UnsupportedCountry,
)
from app.middlewares.rbac import extract_bearer_token
from app.models import User
from app.schemas.location import SessionCheckResult
from app.services.access_policy import (
    AccessAction,
    AccessContext,
    AccessDecision,
    decide,
    fail_open_decision,
)
from app.services.audit_log_service import log_blocked_attempt, log_verification_event
from app.services.device_fingerprint import device_fingerprint
from app.services.ip_geolocation import IpCountryResolver, client_ip_from_request
from app.services.location_store import LocationStore
from app.services.phone_country import (
    PhoneCountryError,
    PhoneCountryResult,
    is_country_supported,
    resolve_phone_country,
)
from app.services.risk_engine import RiskAssessment, verify_location
from app.services.session_location_service import (
    derive_session_id,
    is_session_revoked,
    record_session_location,
    revoke_session,
)
from app.services.token_service import verify_token

logger = logging.getLogger(__name__)

LOCATION_UNAVAILABLE_MESSAGE = "We could not verify your location right now. Please try again in a moment."


@dataclass(frozen=True)
class CheckOutcome:
    assessment: RiskAssessment
    decision: AccessDecision


async def _assess(
    ip: Optional[str],
    registered_country: str,
    phone_country: Optional[str],
    resolver: Optional[IpCountryResolver],
) -> RiskAssessment:
    try:
        return await verify_location(ip, registered_country, phone_country, resolver=resolver)
    except Exception as e:
        logger.exception(f"[LocationGuard] Risk scoring failed for {ip} / {registered_country}")
        raise LocationCheckUnavailable(LOCATION_UNAVAILABLE_MESSAGE) from e


def _policy_block(decision: AccessDecision, assessment: RiskAssessment) -> PolicyBlock:
    return PolicyBlock(
        decision.reason or "Access denied from this location.",
        risk_score=assessment.risk_score,
        action=decision.action.value,
        details={"flags": assessment.flag_values()},
    )


def _phone_country(phone: Optional[str], default_country: Optional[str] = None) -> Optional[str]:
    if not phone:
        return None
    return resolve_phone_country(phone, default_country).country_code


# ----------------------
# Signup
# ----------------------

CreateAccount = Callable[[str, PhoneCountryResult], Awaitable[Any]]


def resolve_signup_country(phone: str, registered_country: Optional[str] = None) -> PhoneCountryResult:
    """Validate the phone and registered country before any scoring runs."""
    phone_result = resolve_phone_country(phone, default_country=registered_country)
    if phone_result.error is PhoneCountryError.unsupported_prefix:
        raise UnsupportedCountry(phone_result.message or "Phone number country code not supported.")
    if not phone_result.success:
        raise InvalidPhoneNumber(phone_result.message or "Invalid phone number.", {"reason": phone_result.error.value})
    if registered_country and not is_country_supported(registered_country):
        raise UnsupportedCountry(f"Country {registered_country.upper()} is not supported.")
    return phone_result


async def run_signup_check(
    store: LocationStore,
    *,
    email: str,
    phone: str,
    ip: Optional[str],
    user_agent: Optional[str],
    create_account: CreateAccount,
    registered_country: Optional[str] = None,
    resolver: Optional[IpCountryResolver] = None,
):
    """Screen a signup; the account is only created when the policy allows it.

    Returns ``(CheckOutcome, account)``. Raises ``UnsupportedCountry`` or
    ``InvalidPhoneNumber`` before scoring, ``LocationCheckUnavailable`` when
    scoring fails and ``PolicyBlock`` on reject.
    """
    phone_result = resolve_signup_country(phone, registered_country)
    registered = (registered_country or phone_result.country_code).upper()

    assessment = await _assess(ip, registered, phone_result.country_code, resolver)
    decision = decide(AccessContext.signup, assessment)

    if decision.action.denies:
        await log_verification_event(store, AccessContext.signup.event_type, assessment, user_agent=user_agent)
        await log_blocked_attempt(
            store, AccessContext.signup.event_type, assessment, decision.reason,
            email=email, user_agent=user_agent,
        )
        raise _policy_block(decision, assessment)

    if decision.action is AccessAction.monitor:
        logger.warning(f"[LocationGuard] Signup flagged for monitoring: {email} score={assessment.risk_score} flags={assessment.flag_values()}")

    # The event is written even when account creation fails (duplicate email/phone)
    account = None
    try:
        account = await create_account(registered, phone_result)
    finally:
        await log_verification_event(
            store, AccessContext.signup.event_type, assessment,
            user_id=getattr(account, "id", None), user_agent=user_agent,
        )
    return CheckOutcome(assessment, decision), account


# ----------------------
# Signin
# ----------------------

async def _record_device(store: LocationStore, user_id: int, headers: Mapping[str, str], trusted_if_first: bool) -> None:
    fingerprint = device_fingerprint(headers)
    try:
        first_device = not await store.has_devices(user_id)
    except SQLAlchemyError as e:
        logger.warning(f"[LocationGuard] Device lookup failed for user {user_id}: {e}")
        first_device = False
    result = await store.upsert_device(user_id, fingerprint, is_trusted=first_device and trusted_if_first)
    if not result.ok:
        logger.warning(f"[LocationGuard] Device record not written for user {user_id}: {result.error.message}")


async def run_signin_check(
    store: LocationStore,
    redis,
    *,
    user: User,
    ip: Optional[str],
    user_agent: Optional[str],
    headers: Mapping[str, str],
    session_token: Optional[str],
    resolver: Optional[IpCountryResolver] = None,
) -> CheckOutcome:
    """Screen an authenticated signin before its tokens are handed out."""
    if not user.country:
        raise UnsupportedCountry("User country not found.")

    assessment = await _assess(ip, user.country, _phone_country(user.phone, user.country), resolver)
    decision = decide(AccessContext.signin, assessment)
    session_id = derive_session_id(session_token)

    await log_verification_event(store, AccessContext.signin.event_type, assessment, user_id=user.id, user_agent=user_agent)

    if decision.action.denies:
        await log_blocked_attempt(
            store, AccessContext.signin.event_type, assessment, assessment.message or decision.reason,
            user_id=user.id, email=user.email, user_agent=user_agent,
        )
        await revoke_session(redis, session_id, user.id, assessment.risk_score)
        raise _policy_block(decision, assessment)

    if decision.requires_verification:
        logger.warning(f"[LocationGuard] Medium-high risk login: {user.email} score={assessment.risk_score} flags={assessment.flag_values()}")

    await record_session_location(
        store, user.id, session_id, ip,
        assessment.detected_country or assessment.registered_country,
        assessment.is_vpn, assessment.risk_score,
    )
    await _record_device(store, user.id, headers, trusted_if_first=assessment.verified)
    return CheckOutcome(assessment, decision)


# ----------------------
# Per-request session check
# ----------------------

async def _check_session(
    store: LocationStore,
    redis,
    request: Request,
    resolver: Optional[IpCountryResolver],
) -> SessionCheckResult:
    token = extract_bearer_token(request)
    claims = verify_token(token) if token else None
    if not claims:
        return SessionCheckResult(allowed=False, reason="No active session")

    session_id = derive_session_id(token)
    if await is_session_revoked(redis, session_id):
        return SessionCheckResult(allowed=False, reason="Session has been terminated.", requires_action=AccessAction.block)

    user = await store.get_user(claims.get("user_id"))
    if user is None or not user.country:
        return SessionCheckResult(allowed=False, reason="User profile or country not found")

    ip = client_ip_from_request(request)
    user_agent = request.headers.get("user-agent")
    assessment = await verify_location(ip, user.country, _phone_country(user.phone, user.country), resolver=resolver)
    decision = decide(AccessContext.session_check, assessment)

    await record_session_location(
        store, user.id, session_id, ip,
        assessment.detected_country or assessment.registered_country,
        assessment.is_vpn, assessment.risk_score,
    )
    await log_verification_event(store, AccessContext.session_check.event_type, assessment, user_id=user.id, user_agent=user_agent)

    if decision.action.denies:
        await log_blocked_attempt(
            store, AccessContext.session_check.event_type, assessment, decision.reason,
            user_id=user.id, email=user.email, user_agent=user_agent,
        )
        await revoke_session(redis, session_id, user.id, assessment.risk_score)
    elif decision.action is AccessAction.monitor:
        logger.warning(f"[LocationGuard] Medium risk session: user={user.id} score={assessment.risk_score} flags={assessment.flag_values()}")

    return SessionCheckResult(
        allowed=decision.allow,
        reason=decision.reason,
        risk_score=assessment.risk_score,
        requires_action=decision.action,
    )


async def check_session(
    store: LocationStore,
    redis,
    request: Request,
    resolver: Optional[IpCountryResolver] = None,
) -> SessionCheckResult:
    """Re-score the caller's location for an already-authenticated session.

    Never raises: any failure is reported as allowed with action ``monitor``
    so an outage cannot lock out every signed-in user.
    """
    try:
        return await _check_session(store, redis, request, resolver)
    except Exception:
        logger.exception("[LocationGuard] Session location check error; failing open")
        decision = fail_open_decision()
        return SessionCheckResult(allowed=decision.allow, reason=decision.reason, requires_action=decision.action)
