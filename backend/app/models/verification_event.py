from sqlalchemy import Column, Integer, String, DateTime, Boolean, JSON
from app.models.user import Base, utcnow
import enum


class EventType(str, enum.Enum):
    signup = "signup"
    login = "login"
    session_check = "session_check"


class VerificationEvent(Base):
    """Append-only record of one location risk assessment."""

    __tablename__ = "location_verification_events"
    id = Column(Integer, primary_key=True, index=True)
    # Nullable: a rejected signup has no account to attach to
    user_id = Column(Integer, nullable=True, index=True)
    event_type = Column(String, nullable=False)
    ip_address = Column(String, nullable=True)
    detected_country = Column(String(2), nullable=True)
    registered_country = Column(String(2), nullable=False)
    method = Column(String, default="ip", nullable=False)
    result = Column(Boolean, nullable=False)
    risk_score = Column(Integer, nullable=False)
    risk_flags = Column(JSON, default=list, nullable=False)
    user_agent = Column(String, nullable=True)
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False)
