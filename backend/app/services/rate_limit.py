from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from fastapi.responses import JSONResponse
from fastapi import Request
import os

from app.services.ip_geolocation import client_ip_from_request

AUTH_RATE_LIMIT = os.getenv("AUTH_RATE_LIMIT", "10/minute")
GEO_RATE_LIMIT = os.getenv("GEO_RATE_LIMIT", "30/minute")


def rate_limit_key(request: Request) -> str:
    # Same proxy-aware client IP the location checks score
    return client_ip_from_request(request) or "unknown"


# Global limiter instance for the app
limiter = Limiter(
    key_func=rate_limit_key,
    default_limits=[],
    enabled=os.getenv("RATE_LIMIT_ENABLED", "1") != "0",
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={
            "detail": {
                "message": "Too many attempts, please wait before trying again.",
                "limit": str(exc.detail),
            }
        },
    )
