from sqlalchemy import Column, Integer, String, DateTime, JSON
from app.models.user import Base, utcnow


class BlockedAttempt(Base):
    """Append-only record written only when the access policy denies."""

    __tablename__ = "blocked_access_attempts"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=True, index=True)
    email = Column(String, nullable=True)
    ip_address = Column(String, nullable=True)
    detected_country = Column(String(2), nullable=True)
    registered_country = Column(String(2), nullable=True)
    attempt_type = Column(String, nullable=False)
    block_reason = Column(String, nullable=False)
    risk_score = Column(Integer, nullable=False)
    risk_flags = Column(JSON, default=list, nullable=False)
    user_agent = Column(String, nullable=True)
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False)
