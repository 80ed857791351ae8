from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db, get_redis
from app.models import User
from app.schemas.auth import SigninRequest, SigninResponse, SignupRequest, SignupResponse
from app.schemas.location import RiskAssessmentRead
from app.services.access_policy import AccessAction
from app.services.ip_geolocation import IpCountryResolver, client_ip_from_request, get_ip_resolver
from app.services.location_guard import run_signin_check, run_signup_check
from app.services.location_store import LocationStore
from app.services.password_service import hash_password, verify_password
from app.services.phone_country import PhoneCountryResult
from app.services.rate_limit import AUTH_RATE_LIMIT, limiter
from app.services.token_service import create_jwt_token_pair

router = APIRouter(prefix="/auth", tags=["auth"])

ROLE_REDIRECTS = {
    "borrower": "/borrower/dashboard",
    "lender": "/lender/dashboard",
    "admin": "/admin/dashboard",
}


@router.post("/signup", response_model=SignupResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(AUTH_RATE_LIMIT)
async def signup(
    request: Request,
    data: SignupRequest,
    db: AsyncSession = Depends(get_db),
    resolver: IpCountryResolver = Depends(get_ip_resolver),
):
    store = LocationStore(db)
    if not store.configured:
        raise HTTPException(status_code=503, detail={"message": "Database not configured"})
    email = data.email.lower()
    if await store.get_user_by_email(email):
        raise HTTPException(status_code=409, detail={"message": "Email already registered."})

    async def create_account(country: str, phone: PhoneCountryResult) -> User:
        user = User(
            name=data.name,
            email=email,
            phone=phone.formatted_number,
            country=country,
            password_hash=hash_password(data.password),
            role=data.role,
        )
        try:
            return await store.create_user(user)
        except IntegrityError:
            raise HTTPException(status_code=409, detail={"message": "Email or phone already registered."})

    outcome, user = await run_signup_check(
        store,
        email=email,
        phone=data.phone,
        registered_country=data.country,
        ip=client_ip_from_request(request),
        user_agent=request.headers.get("user-agent"),
        create_account=create_account,
        resolver=resolver,
    )
    return SignupResponse(
        user_id=user.id,
        email=user.email,
        country=user.country,
        flagged_for_monitoring=outcome.decision.action is AccessAction.monitor,
        location=RiskAssessmentRead.from_assessment(outcome.assessment),
    )


@router.post("/signin", response_model=SigninResponse)
@limiter.limit(AUTH_RATE_LIMIT)
async def signin(
    request: Request,
    data: SigninRequest,
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
    resolver: IpCountryResolver = Depends(get_ip_resolver),
):
    store = LocationStore(db)
    if not store.configured:
        raise HTTPException(status_code=503, detail={"message": "Database not configured"})
    user = await store.get_user_by_email(data.email)
    if user is None or not verify_password(data.password, user.password_hash):
        raise HTTPException(status_code=401, detail={"message": "Invalid email or password"})

    # Tokens are minted first so the session key exists; they are discarded on block
    tokens = create_jwt_token_pair({"user_id": user.id, "email": user.email, "role": user.role})
    outcome = await run_signin_check(
        store,
        redis,
        user=user,
        ip=client_ip_from_request(request),
        user_agent=request.headers.get("user-agent"),
        headers=request.headers,
        session_token=tokens["access_token"],
        resolver=resolver,
    )
    return SigninResponse(
        **tokens,
        requires_verification=outcome.decision.requires_verification,
        redirect_to=ROLE_REDIRECTS.get(user.role, "/dashboard"),
        location=RiskAssessmentRead.from_assessment(outcome.assessment),
    )
