"""
Security Configuration Module

CORS, trusted hosts, security headers, logging setup and startup environment
validation for the location risk API.
"""

import os
from typing import List
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.middleware.gzip import GZipMiddleware
import logging

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Root logging config; LOG_LEVEL defaults to INFO."""
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _env_list(name: str) -> List[str]:
    return [item.strip() for item in os.getenv(name, "").split(",") if item.strip()]


class SecurityConfig:
    """Security configuration class"""

    def __init__(self):
        self.environment = os.getenv("ENVIRONMENT", "development")
        self.allowed_hosts = self._get_allowed_hosts()
        self.cors_origins = self._get_cors_origins()

    def _get_allowed_hosts(self) -> List[str]:
        """ALLOWED_HOSTS in production, anything elsewhere"""
        if self.environment == "production":
            return _env_list("ALLOWED_HOSTS") or ["localhost"]
        return ["*"]

    def _get_cors_origins(self) -> List[str]:
        configured = _env_list("CORS_ORIGINS")
        if configured or self.environment == "production":
            return configured
        return [
            "http://127.0.0.1:3000",
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ]

    def apply_security_middleware(self, app: FastAPI) -> None:
        """Apply all security middleware to the FastAPI app."""

        app.add_middleware(
            TrustedHostMiddleware,
            allowed_hosts=self.allowed_hosts,
        )

        app.add_middleware(GZipMiddleware, minimum_size=1000)

        app.add_middleware(SecurityHeadersMiddleware)

        # CORS outermost so even error responses include CORS headers
        app.add_middleware(
            CORSMiddleware,
            allow_origins=self.cors_origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "OPTIONS"],
            allow_headers=[
                "Accept",
                "Accept-Language",
                "Content-Type",
                "Authorization",
                "X-Requested-With",
                "Origin",
            ],
            # The location gate reports its outcome through these
            expose_headers=["X-Location-Risk-Score", "X-Location-Action"],
            max_age=86400,
        )

        logger.info(f"Security middleware applied for environment: {self.environment}")


class SecurityHeadersMiddleware:
    """Middleware to add security headers to all responses"""

    HEADERS = {
        b"X-Content-Type-Options": b"nosniff",
        b"X-Frame-Options": b"DENY",
        b"Referrer-Policy": b"strict-origin-when-cross-origin",
        b"Content-Security-Policy": b"default-src 'none'; frame-ancestors 'none';",
        b"Cache-Control": b"no-store",
    }

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope.get("type") != "http":
            return await self.app(scope, receive, send)

        async def send_with_headers(message):
            if message.get("type") == "http.response.start":
                existing_headers = list(message.get("headers", []))
                existing_headers.extend(self.HEADERS.items())
                if os.getenv("ENVIRONMENT", "development").lower() == "production":
                    existing_headers.append((b"Strict-Transport-Security", b"max-age=31536000; includeSubDomains"))
                message["headers"] = existing_headers
            await send(message)

        return await self.app(scope, receive, send_with_headers)


def validate_environment() -> None:
    """Validate environment configuration"""
    required_vars = [
        "JWT_SECRET",
        "POSTGRES_URI",
        "REDIS_URI",
    ]

    missing_vars = [var for var in required_vars if not os.getenv(var)]
    if missing_vars:
        logger.warning(f"Missing environment variables: {missing_vars}")

    jwt_secret = os.getenv("JWT_SECRET", "")
    if len(jwt_secret) < 32:
        logger.warning("JWT_SECRET should be at least 32 characters long")

    env = os.getenv("ENVIRONMENT", "development")
    if env not in ["development", "test", "staging", "production"]:
        logger.warning(f"Invalid ENVIRONMENT value: {env}")

    if not os.getenv("GEOIP2_CITY_DB"):
        logger.info("GEOIP2_CITY_DB not set; looking for GeoLite2-City.mmdb under data/")


# Create global security config instance
security_config = SecurityConfig()
