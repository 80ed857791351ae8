from typing import Optional
from fastapi import Depends, HTTPException, status, Request
from app.services.token_service import verify_token


def extract_bearer_token(request: Request) -> Optional[str]:
    auth = request.headers.get("Authorization")
    if auth and auth.startswith("Bearer "):
        return auth.split(" ", 1)[1]
    # Optional: cookie fallback
    return request.cookies.get("access_token")


# Dependency to extract full JWT claims
def get_current_claims(request: Request) -> dict:
    token = extract_bearer_token(request)
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing or invalid token.")
    payload = verify_token(token)
    if payload is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token.")
    return payload


# Dependency to require specific roles; returns claims for downstream usage
def require_roles(*roles: str):
    def dependency(claims: dict = Depends(get_current_claims)):
        role = claims.get("role", "borrower")
        if role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions.")
        return claims
    return dependency
