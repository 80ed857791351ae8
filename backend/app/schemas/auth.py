from pydantic import BaseModel, EmailStr, Field
from typing import Literal, Optional

from app.schemas.location import RiskAssessmentRead


class SignupRequest(BaseModel):
    name: str = Field(min_length=1, max_length=120)
    email: EmailStr
    phone: str = Field(min_length=6, max_length=20)
    password: str = Field(min_length=8, max_length=128)
    role: Literal["borrower", "lender"] = "borrower"
    # Optional explicit country choice; defaults to the phone-derived country
    country: Optional[str] = Field(default=None, min_length=2, max_length=2)


class SignupResponse(BaseModel):
    user_id: int
    email: EmailStr
    country: str
    flagged_for_monitoring: bool = False
    location: RiskAssessmentRead


class SigninRequest(BaseModel):
    email: EmailStr
    password: str


class SigninResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int
    requires_verification: bool = False
    redirect_to: str
    location: RiskAssessmentRead
