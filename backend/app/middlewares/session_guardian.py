from fastapi import Depends, HTTPException, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db, get_redis
from app.schemas.location import SessionCheckResult
from app.services.access_policy import AccessAction
from app.services.ip_geolocation import IpCountryResolver, get_ip_resolver
from app.services.location_guard import check_session
from app.services.location_store import LocationStore

# Signup and signin run their own location checks
EXEMPT_PREFIXES = ("/api/auth",)


async def enforce_session_location(
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
    resolver: IpCountryResolver = Depends(get_ip_resolver),
):
    """FastAPI dependency that re-checks the caller's location on every request.
    - block => 403 LOCATION_VERIFICATION_FAILED
    - no session => 401
    - otherwise allow, exposing the score and action as response headers
    """
    if request.url.path.startswith(EXEMPT_PREFIXES):
        return None
    result: SessionCheckResult = await check_session(LocationStore(db), redis, request, resolver=resolver)
    if not result.allowed:
        if result.requires_action is AccessAction.block:
            raise HTTPException(
                status_code=403,
                detail={
                    "message": result.reason,
                    "code": "LOCATION_VERIFICATION_FAILED",
                    "requires_action": result.requires_action.value,
                },
            )
        raise HTTPException(status_code=401, detail={"message": result.reason or "Not authenticated"})
    if result.risk_score is not None:
        response.headers["X-Location-Risk-Score"] = str(result.risk_score)
    response.headers["X-Location-Action"] = result.requires_action.value
    return result
