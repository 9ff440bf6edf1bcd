# patrol_auth/routers/auth_router.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..application.ports.rate_limiter import RateLimiter
from ..application.services.auth_service import AuthService
from ..core.config import Settings
from ..exceptions import create_success_response
from ..schemas import (
    RequestCodeRequest, RequestCodeResponse, ResendCodeRequest, VerifyCodeRequest,
    TokenResponse, RefreshTokenRequest, ValidateTokenRequest, ValidateTokenResponse,
)
from ..utils import is_valid_phone_number, mask_phone

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])

bearer_scheme = HTTPBearer(auto_error=False)


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_rate_limiter(request: Request) -> RateLimiter:
    return request.app.state.rate_limiter


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def _check_code_rate_limit(phone_number: str, limiter: RateLimiter, settings: Settings) -> None:
    # Malformed numbers are rejected by the service and never become limiter keys
    if not is_valid_phone_number(phone_number):
        return
    allowed = limiter.allow(
        f"otp:{phone_number}",
        max_requests=settings.OTP_REQUESTS_PER_WINDOW,
        window_seconds=settings.OTP_RATE_LIMIT_WINDOW_SECONDS,
    )
    if not allowed:
        logger.warning(f"Code request rate limit exceeded for {mask_phone(phone_number)}")
        raise HTTPException(status_code=429, detail="Too many verification requests. Please try again later.")


def _token_payload(issued) -> dict:
    return TokenResponse(token=issued.token, expires_at=issued.expires_at).model_dump(mode="json")


@router.post("/verify")
def request_verification_code(
    body: RequestCodeRequest,
    service: AuthService = Depends(get_auth_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
    settings: Settings = Depends(get_app_settings),
):
    _check_code_rate_limit(body.phone_number, limiter, settings)
    verification_id = service.request_verification_code(body.phone_number)
    return create_success_response(RequestCodeResponse(verification_id=verification_id).model_dump())


@router.post("/resend")
def resend_verification_code(
    body: ResendCodeRequest,
    service: AuthService = Depends(get_auth_service),
    limiter: RateLimiter = Depends(get_rate_limiter),
    settings: Settings = Depends(get_app_settings),
):
    _check_code_rate_limit(body.phone_number, limiter, settings)
    verification_id = service.resend_verification_code(body.phone_number, body.verification_id)
    return create_success_response(RequestCodeResponse(verification_id=verification_id).model_dump())


@router.post("/validate")
def verify_code(body: VerifyCodeRequest, service: AuthService = Depends(get_auth_service)):
    issued = service.verify_code(body.phone_number, body.code, body.verification_id)
    return create_success_response(_token_payload(issued))


@router.post("/refresh")
def refresh_token(
    body: Optional[RefreshTokenRequest] = None,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    service: AuthService = Depends(get_auth_service),
):
    token = body.token if body and body.token else None
    if token is None and credentials and credentials.credentials:
        token = credentials.credentials
    issued = service.refresh_token(token or "")
    return create_success_response(_token_payload(issued))


@router.post("/token/validate")
def validate_token(body: ValidateTokenRequest, service: AuthService = Depends(get_auth_service)):
    valid = service.validate_token(body.token)
    return create_success_response(ValidateTokenResponse(valid=valid).model_dump())
