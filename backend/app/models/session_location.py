from sqlalchemy import Column, Integer, String, DateTime, Boolean, UniqueConstraint
from app.models.user import Base, utcnow


class SessionLocation(Base):
    """Point-in-time location snapshot of one active session.

    One row per (user_id, session_id); every check overwrites all fields.
    History lives in VerificationEvent, not here.
    """

    __tablename__ = "user_session_locations"
    __table_args__ = (
        UniqueConstraint("user_id", "session_id", name="uq_session_location_user_session"),
    )
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    session_id = Column(String, nullable=False)
    ip_address = Column(String, nullable=True)
    country_code = Column(String(2), nullable=True)
    is_vpn = Column(Boolean, default=False, nullable=False)
    risk_score = Column(Integer, nullable=False)
    last_activity = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
