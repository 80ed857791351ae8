from __future__ import annotations
from dataclasses import dataclass
from typing import Dict, List, Optional
import enum
import os

from app.models.verification_event import EventType
from app.services.risk_engine import RiskAssessment


class AccessContext(str, enum.Enum):
    signup = "signup"
    signin = "signin"
    session_check = "session_check"

    @property
    def event_type(self) -> EventType:
        return {
            AccessContext.signup: EventType.signup,
            AccessContext.signin: EventType.login,
            AccessContext.session_check: EventType.session_check,
        }[self]


class AccessAction(str, enum.Enum):
    none = "none"
    monitor = "monitor"
    verify = "verify"
    block = "block"
    reject = "reject"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    @property
    def denies(self) -> bool:
        return self in (AccessAction.block, AccessAction.reject)


_SEVERITY = {
    AccessAction.none: 0,
    AccessAction.monitor: 1,
    AccessAction.verify: 2,
    AccessAction.block: 3,
    AccessAction.reject: 3,
}

# Absolute cutoff shared by every context that has an established identity
BLOCK_THRESHOLD = int(os.environ.get("RISK_BLOCK_THRESHOLD", "90"))
SIGNUP_REJECT_THRESHOLD = int(os.environ.get("RISK_SIGNUP_REJECT_THRESHOLD", "80"))
SIGNUP_MONITOR_THRESHOLD = int(os.environ.get("RISK_SIGNUP_MONITOR_THRESHOLD", "50"))
SIGNIN_VERIFY_THRESHOLD = int(os.environ.get("RISK_SIGNIN_VERIFY_THRESHOLD", "60"))
SESSION_VERIFY_THRESHOLD = int(os.environ.get("RISK_SESSION_VERIFY_THRESHOLD", "70"))
SESSION_MONITOR_THRESHOLD = int(os.environ.get("RISK_SESSION_MONITOR_THRESHOLD", "50"))

SIGNUP_REJECT_MESSAGE = "Signup is not available from your current location. Please disable VPN/proxy and try again from your registered country."
SIGNIN_BLOCK_MESSAGE = "Access denied: Unable to verify your location. Please disable VPN/proxy and try again from your registered country."
SESSION_BLOCK_MESSAGE = "Location verification failed. Access denied from this location."
VERIFY_MESSAGE = "Additional verification required due to unusual location."


@dataclass(frozen=True)
class Band:
    threshold: int
    action: AccessAction
    allow: bool
    reason: Optional[str] = None
    requires_verification: bool = False


# Highest threshold first; the first band the score reaches wins
POLICY_BANDS: Dict[AccessContext, List[Band]] = {
    AccessContext.signup: [
        Band(SIGNUP_REJECT_THRESHOLD, AccessAction.reject, allow=False, reason=SIGNUP_REJECT_MESSAGE),
        Band(SIGNUP_MONITOR_THRESHOLD, AccessAction.monitor, allow=True),
    ],
    AccessContext.signin: [
        Band(BLOCK_THRESHOLD, AccessAction.block, allow=False, reason=SIGNIN_BLOCK_MESSAGE),
        Band(SIGNIN_VERIFY_THRESHOLD, AccessAction.verify, allow=True, reason=VERIFY_MESSAGE, requires_verification=True),
    ],
    AccessContext.session_check: [
        Band(BLOCK_THRESHOLD, AccessAction.block, allow=False, reason=SESSION_BLOCK_MESSAGE),
        Band(SESSION_VERIFY_THRESHOLD, AccessAction.verify, allow=True, reason=VERIFY_MESSAGE, requires_verification=True),
        Band(SESSION_MONITOR_THRESHOLD, AccessAction.monitor, allow=True),
    ],
}


@dataclass(frozen=True)
class AccessDecision:
    allow: bool
    action: AccessAction
    reason: Optional[str] = None
    requires_verification: bool = False


def decide(context: AccessContext, assessment: RiskAssessment) -> AccessDecision:
    """Map a risk assessment to an action using the bands for ``context``."""
    for band in POLICY_BANDS[context]:
        if assessment.risk_score >= band.threshold:
            return AccessDecision(
                allow=band.allow,
                action=band.action,
                reason=band.reason,
                requires_verification=band.requires_verification,
            )
    return AccessDecision(allow=True, action=AccessAction.none)


def fail_open_decision() -> AccessDecision:
    """Decision used when a session check cannot be evaluated at all."""
    return AccessDecision(allow=True, action=AccessAction.monitor, reason="Location check error")
