from sqlalchemy import Column, Integer, String, DateTime, Boolean, UniqueConstraint
from app.models.user import Base, utcnow


class DeviceRecord(Base):
    __tablename__ = "user_devices"
    __table_args__ = (
        UniqueConstraint("user_id", "device_fingerprint", name="uq_user_device_fingerprint"),
    )
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    device_fingerprint = Column(String(64), nullable=False)
    last_used = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    is_trusted = Column(Boolean, default=False, nullable=False)
