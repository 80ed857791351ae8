from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db, get_redis
from app.middlewares.rbac import extract_bearer_token, get_current_claims
from app.middlewares.session_guardian import enforce_session_location
from app.schemas.location import SessionCheckResult, SessionLocationRead
from app.services.ip_geolocation import IpCountryResolver, get_ip_resolver
from app.services.location_guard import check_session
from app.services.location_store import LocationStore
from app.services.session_location_service import derive_session_id

router = APIRouter(prefix="/session", tags=["session-guardian"])


@router.get("/location", response_model=SessionCheckResult)
async def session_location_check(
    request: Request,
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
    resolver: IpCountryResolver = Depends(get_ip_resolver),
):
    """Explicit location check for the current session; reports instead of enforcing."""
    return await check_session(LocationStore(db), redis, request, resolver=resolver)


@router.get("/current", response_model=SessionLocationRead)
async def current_session_location(
    request: Request,
    db: AsyncSession = Depends(get_db),
    claims: dict = Depends(get_current_claims),
    _gate=Depends(enforce_session_location),
):
    """Latest location snapshot of the caller's session, behind the location gate."""
    session_id = derive_session_id(extract_bearer_token(request))
    snapshot = await LocationStore(db).get_session_location(claims.get("user_id"), session_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="No location recorded for this session")
    return snapshot
