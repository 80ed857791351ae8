from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from app.database import get_db
from app.middlewares.rbac import require_roles
from app.models import EventType
from app.schemas.location import BlockedAttemptRead, VerificationEventRead
from app.services.location_store import LocationStore

router = APIRouter(prefix="/admin/location", tags=["admin"])


def get_admin_claims(claims: dict = Depends(require_roles("admin"))):
    return claims


def _store(db) -> LocationStore:
    store = LocationStore(db)
    if not store.configured:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Database not configured")
    return store


@router.get("/blocked-attempts", response_model=List[BlockedAttemptRead])
async def blocked_attempts(
    user_id: Optional[int] = None,
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    _admin=Depends(get_admin_claims),
):
    return await _store(db).list_blocked_attempts(user_id=user_id, limit=limit)


@router.get("/events", response_model=List[VerificationEventRead])
async def verification_events(
    user_id: Optional[int] = None,
    event_type: Optional[EventType] = None,
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    _admin=Depends(get_admin_claims),
):
    return await _store(db).list_verification_events(
        user_id=user_id,
        event_type=event_type.value if event_type else None,
        limit=limit,
    )
