from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from app.services.access_policy import AccessAction
from app.services.risk_engine import RiskAssessment


class RiskAssessmentRead(BaseModel):
    detected_country: Optional[str] = None
    registered_country: str
    ip_address: Optional[str] = None
    risk_score: int = Field(ge=0, le=100)
    flags: List[str] = []
    verified: bool
    verification_method: str = "ip"
    message: Optional[str] = None

    @classmethod
    def from_assessment(cls, assessment: RiskAssessment) -> "RiskAssessmentRead":
        return cls(
            detected_country=assessment.detected_country,
            registered_country=assessment.registered_country,
            ip_address=assessment.ip_address,
            risk_score=assessment.risk_score,
            flags=assessment.flag_values(),
            verified=assessment.verified,
            verification_method=assessment.method,
            message=assessment.message,
        )


class VerifyLocationRequest(BaseModel):
    ip_address: Optional[str] = None
    registered_country: str = Field(min_length=2, max_length=2)
    phone_country: Optional[str] = Field(default=None, min_length=2, max_length=2)


class SessionCheckResult(BaseModel):
    allowed: bool
    reason: Optional[str] = None
    risk_score: Optional[int] = None
    requires_action: AccessAction = AccessAction.none


class DetectedLocationResponse(BaseModel):
    ip: Optional[str] = None
    country: Optional[str] = None
    country_name: Optional[str] = None
    is_supported: bool
    is_vpn: bool


class SupportedCountry(BaseModel):
    code: str
    name: str
    phone_code: str
    example: str


class VerificationEventRead(BaseModel):
    id: int
    user_id: Optional[int] = None
    event_type: str
    ip_address: Optional[str] = None
    detected_country: Optional[str] = None
    registered_country: str
    method: str
    result: bool
    risk_score: int
    risk_flags: List[str] = []
    user_agent: Optional[str] = None
    timestamp: datetime

    class Config:
        from_attributes = True


class BlockedAttemptRead(BaseModel):
    id: int
    user_id: Optional[int] = None
    email: Optional[str] = None
    ip_address: Optional[str] = None
    detected_country: Optional[str] = None
    registered_country: Optional[str] = None
    attempt_type: str
    block_reason: str
    risk_score: int
    risk_flags: List[str] = []
    user_agent: Optional[str] = None
    timestamp: datetime

    class Config:
        from_attributes = True


class SessionLocationRead(BaseModel):
    user_id: int
    session_id: str
    ip_address: Optional[str] = None
    country_code: Optional[str] = None
    is_vpn: bool
    risk_score: int
    last_activity: datetime

    class Config:
        from_attributes = True
