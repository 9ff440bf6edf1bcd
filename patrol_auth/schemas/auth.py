# patrol_auth/schemas/auth.py
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class RequestCodeRequest(BaseModel):
    phone_number: str = Field(..., description="Phone number in E.164 format (e.g., +15551234567)")


class RequestCodeResponse(BaseModel):
    verification_id: str


class ResendCodeRequest(BaseModel):
    phone_number: str = Field(..., description="Phone number the code was requested for")
    verification_id: str = Field(..., description="Verification ID returned when the code was requested")


class VerifyCodeRequest(BaseModel):
    phone_number: str = Field(..., description="Phone number the code was sent to")
    code: str = Field(..., description="Numeric verification code received by SMS")
    verification_id: Optional[str] = Field(None, description="Verification ID; defaults to the latest request for the phone number")


class TokenResponse(BaseModel):
    token: str
    expires_at: datetime


class RefreshTokenRequest(BaseModel):
    token: Optional[str] = Field(None, description="Current session token; may be expired")


class ValidateTokenRequest(BaseModel):
    token: Optional[str] = None


class ValidateTokenResponse(BaseModel):
    valid: bool
