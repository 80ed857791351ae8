from fastapi import APIRouter, Depends, Request
from typing import List

from app.schemas.location import (
    DetectedLocationResponse,
    RiskAssessmentRead,
    SupportedCountry,
    VerifyLocationRequest,
)
from app.services.ip_geolocation import IpCountryResolver, client_ip_from_request, get_ip_resolver
from app.services.phone_country import is_country_supported, supported_phone_countries
from app.services.rate_limit import GEO_RATE_LIMIT, limiter
from app.services.risk_engine import verify_location

router = APIRouter(prefix="/geo", tags=["geo"])


@router.post("/verify", response_model=RiskAssessmentRead)
@limiter.limit(GEO_RATE_LIMIT)
async def verify(
    request: Request,
    data: VerifyLocationRequest,
    resolver: IpCountryResolver = Depends(get_ip_resolver),
):
    """Score an IP against a registered country without side effects.

    Falls back to the caller's own IP when none is given.
    """
    ip = data.ip_address or client_ip_from_request(request)
    assessment = await verify_location(
        ip, data.registered_country.upper(),
        data.phone_country.upper() if data.phone_country else None,
        resolver=resolver,
    )
    return RiskAssessmentRead.from_assessment(assessment)


@router.get("/detect", response_model=DetectedLocationResponse)
async def detect(request: Request, resolver: IpCountryResolver = Depends(get_ip_resolver)):
    # Used by the signup form to preselect a country
    signal = await resolver.resolve(client_ip_from_request(request))
    return DetectedLocationResponse(
        ip=signal.ip,
        country=signal.country_code,
        country_name=signal.country_name,
        is_supported=is_country_supported(signal.country_code),
        is_vpn=signal.is_vpn,
    )


@router.get("/countries", response_model=List[SupportedCountry])
async def countries():
    return [SupportedCountry(**c) for c in supported_phone_countries()]
