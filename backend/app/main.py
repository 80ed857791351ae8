import os
import logging
from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from fastapi.exception_handlers import RequestValidationError
from fastapi.exceptions import HTTPException
from dotenv import load_dotenv
from redis.exceptions import RedisError
from slowapi.middleware import SlowAPIMiddleware
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError

# Load environment variables before any module reads them
load_dotenv(dotenv_path=os.path.join(os.path.dirname(__file__), '../.env'))

from app.database import AsyncSessionLocal, create_tables, redis_client
from app.api import auth, admin, geo
from app.api.session_guardian import session_guardian
from app.exceptions import (
    InvalidPhoneNumber,
    LocationCheckUnavailable,
    LocationRiskError,
    PolicyBlock,
    UnsupportedCountry,
)
from app.security import configure_logging, security_config, validate_environment
from app.services.geoip import init_geoip_readers
from app.services.rate_limit import limiter, rate_limit_exceeded_handler

configure_logging()
validate_environment()
logger = logging.getLogger(__name__)

app = FastAPI(title="Location Risk Engine", version="0.1.0")

# JSON error responses
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail if exc.detail else str(exc)})

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=422, content={"detail": exc.errors()})

# Location risk errors share the {"detail": {...}} envelope of HTTPException
LOCATION_ERROR_STATUS = {
    UnsupportedCountry: 400,
    InvalidPhoneNumber: 422,
    PolicyBlock: 403,
    LocationCheckUnavailable: 503,
}

@app.exception_handler(LocationRiskError)
async def location_risk_exception_handler(request: Request, exc: LocationRiskError):
    status_code = next(
        (code for cls, code in LOCATION_ERROR_STATUS.items() if isinstance(exc, cls)),
        500,
    )
    headers = None
    if isinstance(exc, PolicyBlock):
        headers = {"X-Location-Risk-Score": str(exc.risk_score), "X-Location-Action": exc.action}
    return JSONResponse(status_code=status_code, content={"detail": exc.to_dict()}, headers=headers)

# Security and rate limiting
security_config.apply_security_middleware(app)
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Basic routes
@app.get("/")
def root():
    return {"message": "Location Risk API is running.", "status": "healthy"}

@app.head("/")
def root_head():
    return Response(status_code=200)

@app.get("/health")
async def health_check():
    redis_status = "not configured"
    if redis_client is not None:
        try:
            await redis_client.ping()
            redis_status = "connected"
        except (RedisError, OSError) as e:
            logger.warning(f"[Health] Redis ping failed: {e}")
            redis_status = "error"
    return {
        "status": "ok",
        "postgres": "connected" if AsyncSessionLocal else "not configured",
        "redis": redis_status,
    }

# Routers
app.include_router(auth.router, prefix="/api")
app.include_router(admin.router, prefix="/api")
app.include_router(geo.router, prefix="/api")
app.include_router(session_guardian.router, prefix="/api")

@app.on_event("startup")
async def on_startup():
    init_geoip_readers()
    try:
        await create_tables()
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"[Startup] Table creation failed: {e}")
