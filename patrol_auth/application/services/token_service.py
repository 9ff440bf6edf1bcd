import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from ..ports.clock import Clock
from ..ports.user_directory import Identity
from ...exceptions import ConfigurationError
from ...core.config import MIN_SIGNING_KEY_BYTES

logger = logging.getLogger(__name__)

FIELD_PERSONNEL_ROLE = "field-personnel"


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime


@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    phone_number: str
    role: str
    issued_at: datetime
    expires_at: datetime


class TokenService:
    """Issues and checks HS256 session tokens.

    All configuration is fixed at construction; instances are safe to share
    between threads. Expiry is evaluated against the injected clock with no
    leeway, so a token is rejected from the instant ``now >= exp``.
    """

    def __init__(
        self,
        secret_key: str,
        issuer: str,
        audience: str,
        clock: Clock,
        session_ttl: timedelta = timedelta(minutes=480),
        algorithm: str = "HS256",
    ):
        if not secret_key:
            raise ConfigurationError("Token signing key is not configured")
        if len(secret_key.encode("utf-8")) < MIN_SIGNING_KEY_BYTES:
            raise ConfigurationError(f"Token signing key must be at least {MIN_SIGNING_KEY_BYTES} bytes")
        if not issuer:
            raise ConfigurationError("Token issuer is not configured")
        if not audience:
            raise ConfigurationError("Token audience is not configured")
        if session_ttl <= timedelta(0):
            raise ConfigurationError("Session TTL must be positive")

        self._secret_key = secret_key
        self.issuer = issuer
        self.audience = audience
        self.clock = clock
        self.session_ttl = session_ttl
        self.algorithm = algorithm
        logger.info(f"TokenService initialized with session TTL of {session_ttl}")

    def issue(self, identity: Identity) -> IssuedToken:
        now = self.clock.now()
        issued_at = int(now.timestamp())
        expires_at = int((now + self.session_ttl).timestamp())
        payload = {
            "sub": identity.id,
            "phone": identity.phone_number,
            "role": FIELD_PERSONNEL_ROLE,
            "iss": self.issuer,
            "aud": self.audience,
            "iat": issued_at,
            "exp": expires_at,
            "jti": uuid.uuid4().hex,
        }
        token = jwt.encode(payload, self._secret_key, algorithm=self.algorithm)
        logger.info(f"Token issued for user: {identity.id}")
        return IssuedToken(token=token, expires_at=datetime.fromtimestamp(expires_at, tz=timezone.utc))

    def _decode(self, token: str) -> Optional[Dict[str, Any]]:
        # Time-based claims are checked against self.clock, not the wall clock
        try:
            return jwt.decode(
                token,
                self._secret_key,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                audience=self.audience,
                options={
                    "require": ["exp", "iat", "sub", "iss", "aud"],
                    "verify_exp": False,
                    "verify_iat": False,
                    "verify_nbf": False,
                },
            )
        except jwt.PyJWTError as e:
            logger.warning(f"Token rejected: {e}")
            return None

    def _is_expired(self, payload: Dict[str, Any]) -> bool:
        exp = payload.get("exp")
        if not isinstance(exp, (int, float)):
            return True
        return self.clock.now().timestamp() >= exp

    def validate(self, token: str) -> bool:
        if not token or not isinstance(token, str):
            return False
        payload = self._decode(token)
        if payload is None:
            return False
        if self._is_expired(payload):
            logger.info("Token rejected: expired")
            return False
        return True

    def decode_claims(self, token: str, ignore_expiry: bool = False) -> Optional[TokenClaims]:
        if not token or not isinstance(token, str):
            return None
        payload = self._decode(token)
        if payload is None:
            return None
        if not ignore_expiry and self._is_expired(payload):
            logger.info("Token rejected: expired")
            return None

        user_id = payload.get("sub")
        phone_number = payload.get("phone")
        if not user_id or not phone_number:
            logger.warning("Token rejected: identity claims missing")
            return None
        try:
            issued_at = datetime.fromtimestamp(payload["iat"], tz=timezone.utc)
            expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        except (TypeError, ValueError, OverflowError, OSError):
            logger.warning("Token rejected: malformed time claims")
            return None
        return TokenClaims(
            user_id=user_id,
            phone_number=phone_number,
            role=payload.get("role", ""),
            issued_at=issued_at,
            expires_at=expires_at,
        )

    def extract_user_id(self, token: str) -> Optional[str]:
        claims = self.decode_claims(token, ignore_expiry=True)
        return claims.user_id if claims else None
