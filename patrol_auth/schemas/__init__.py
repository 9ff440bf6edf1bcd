from .auth import (
    RequestCodeRequest, RequestCodeResponse, ResendCodeRequest, VerifyCodeRequest,
    TokenResponse, RefreshTokenRequest, ValidateTokenRequest, ValidateTokenResponse,
)

__all__ = [
    "RequestCodeRequest",
    "RequestCodeResponse",
    "ResendCodeRequest",
    "VerifyCodeRequest",
    "TokenResponse",
    "RefreshTokenRequest",
    "ValidateTokenRequest",
    "ValidateTokenResponse",
]
