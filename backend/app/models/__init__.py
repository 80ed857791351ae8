from app.models.user import Base, User
from app.models.verification_event import VerificationEvent, EventType
from app.models.blocked_attempt import BlockedAttempt
from app.models.session_location import SessionLocation
from app.models.device import DeviceRecord

__all__ = [
    "Base",
    "User",
    "VerificationEvent",
    "EventType",
    "BlockedAttempt",
    "SessionLocation",
    "DeviceRecord",
]
