from sqlalchemy import Column, Integer, String, DateTime
from sqlalchemy.orm import declarative_base
from datetime import datetime, timezone

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    phone = Column(String, unique=True, index=True, nullable=True)
    # Registered ISO 3166-1 alpha-2 country, resolved from the phone prefix at signup
    country = Column(String(2), nullable=True)
    password_hash = Column(String, nullable=False)
    role = Column(String, default="borrower", nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
