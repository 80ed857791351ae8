import os
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import jwt, JWTError
from dotenv import load_dotenv

load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), '../../.env'))

logger = logging.getLogger(__name__)

JWT_SECRET = os.getenv("JWT_SECRET", "fallback-secret-key-for-development-only")
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_TTL_SEC = int(os.getenv("ACCESS_TOKEN_TTL_SEC", "3600"))
REFRESH_TOKEN_TTL_SEC = int(os.getenv("REFRESH_TOKEN_TTL_SEC", "604800"))

# Warn if using fallback secret
if JWT_SECRET == "fallback-secret-key-for-development-only":
    logger.warning("[TokenService] Using fallback JWT secret. Set JWT_SECRET environment variable for production.")


def _create_token(data: dict, expires_in_seconds: int, scope: str) -> str:
    to_encode = data.copy()
    to_encode["scope"] = scope
    # Unique per token so two sign-ins in the same second never share a session key
    to_encode["jti"] = uuid.uuid4().hex
    to_encode["exp"] = datetime.now(timezone.utc) + timedelta(seconds=expires_in_seconds)
    return jwt.encode(to_encode, JWT_SECRET, algorithm=JWT_ALGORITHM)


def create_access_token(data: dict, expires_in_seconds: int = ACCESS_TOKEN_TTL_SEC) -> str:
    return _create_token(data, expires_in_seconds, scope="access")


def create_refresh_token(data: dict, expires_in_seconds: int = REFRESH_TOKEN_TTL_SEC) -> str:
    return _create_token(data, expires_in_seconds, scope="refresh")


def create_jwt_token_pair(data: dict):
    """Create both access and refresh tokens."""
    return {
        "access_token": create_access_token(data),
        "refresh_token": create_refresh_token(data),
        "token_type": "bearer",
        "expires_in": ACCESS_TOKEN_TTL_SEC,
    }


def verify_token(token: str, scope: str = "access") -> Optional[dict]:
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        logger.info(f"[TokenService] Invalid or expired token: {e}")
        return None
    if payload.get("scope") != scope:
        return None
    return payload
