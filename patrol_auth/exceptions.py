from enum import Enum
from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    UNAUTHORIZED = "unauthorized"
    DEPENDENCY_FAILURE = "dependency_failure"
    CONFIGURATION = "configuration"


class AuthError(Exception):
    """Base for every error raised by the authentication core.

    Callers branch on ``kind`` rather than on the concrete class.
    """

    kind: ErrorKind
    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ValidationError(AuthError):
    kind = ErrorKind.VALIDATION
    status_code = 400


class UnauthorizedError(AuthError):
    kind = ErrorKind.UNAUTHORIZED
    status_code = 401


class DependencyFailure(AuthError):
    kind = ErrorKind.DEPENDENCY_FAILURE
    status_code = 503
    retryable = True


class ConfigurationError(AuthError):
    kind = ErrorKind.CONFIGURATION
    status_code = 500


def create_error_response(error_message: str, status_code: int = 400) -> dict:
    """Create a standardized error response"""
    return {
        "success": False,
        "data": None,
        "error": error_message
    }


def create_success_response(data: dict) -> dict:
    """Create a standardized success response"""
    return {
        "success": True,
        "data": data,
        "error": None
    }


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Map typed auth errors onto the response envelope"""
    headers = None
    if exc.kind == ErrorKind.UNAUTHORIZED:
        headers = {"WWW-Authenticate": "Bearer"}
    elif exc.retryable:
        headers = {"Retry-After": "30"}
    content = create_error_response(exc.message, exc.status_code)
    if exc.kind == ErrorKind.DEPENDENCY_FAILURE and exc.details:
        content["data"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Custom exception handler for HTTPException"""
    # Convert 403 from HTTPBearer to 401 for missing authentication
    if exc.status_code == 403 and "Not authenticated" in str(exc.detail):
        return JSONResponse(
            status_code=401,
            content=create_error_response("Authentication required", 401)
        )

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.detail, exc.status_code)
    )
