"""
Error taxonomy for the location risk engine.

Only ``UnsupportedCountry``, ``InvalidPhoneNumber``, ``PolicyBlock`` and
``LocationCheckUnavailable`` ever reach an HTTP caller. ``SignalUnavailable``
is recovered inside the collectors and ``AuditWriteFailure`` travels inside a
``WriteResult``.
"""
from typing import Any, Dict, Optional


class LocationRiskError(Exception):
    """Base class for every error raised by the engine."""

    code = "LOCATION_RISK_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"message": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class SignalUnavailable(LocationRiskError):
    """A collector could not produce its signal (timeout, provider error)."""

    code = "SIGNAL_UNAVAILABLE"


class UnsupportedCountry(LocationRiskError):
    """Registered or detected country is outside the supported set."""

    code = "UNSUPPORTED_COUNTRY"


class PolicyBlock(LocationRiskError):
    """The access policy denied the operation."""

    code = "LOCATION_VERIFICATION_FAILED"

    def __init__(self, message: str, risk_score: int, action: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.risk_score = risk_score
        self.action = action

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["requires_action"] = self.action
        return body


class AuditWriteFailure(LocationRiskError):
    """Persisting an audit or session record failed."""

    code = "AUDIT_WRITE_FAILURE"


class LocationCheckUnavailable(LocationRiskError):
    """Scoring itself failed; signup and signin fail closed on this."""

    code = "LOCATION_CHECK_UNAVAILABLE"


class InvalidPhoneNumber(LocationRiskError):
    """Phone number has a supported prefix but the wrong shape."""

    code = "INVALID_PHONE_NUMBER"
