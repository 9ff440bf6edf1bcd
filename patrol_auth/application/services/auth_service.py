import logging
from dataclasses import dataclass
from typing import Optional

from ..ports.audit_logger import AuditLogger
from ..ports.clock import Clock
from ..ports.notifier import Notifier
from ..ports.user_directory import UserDirectory
from .token_service import IssuedToken, TokenService
from .verification_code_service import VerificationCodeService
from ...exceptions import DependencyFailure, UnauthorizedError, ValidationError
from ...utils import is_numeric_code, is_valid_phone_number, mask_phone

logger = logging.getLogger(__name__)


@dataclass
class AuthService:
    """Two-step phone verification followed by session token issuance."""

    verification: VerificationCodeService
    tokens: TokenService
    user_directory: UserDirectory
    notifier: Notifier
    clock: Clock
    audit_logger: AuditLogger | None = None

    def _audit(self, action: str, phone: str, user_id: Optional[str] = None, success: bool = True, **details) -> None:
        if self.audit_logger is not None:
            self.audit_logger.log(action, phone, user_id=user_id, success=success, details=details)

    def _require_phone(self, phone_number: str) -> None:
        if not phone_number or not phone_number.strip():
            raise ValidationError("Phone number is required")
        if not is_valid_phone_number(phone_number):
            raise ValidationError("Please enter a valid phone number with country code.")

    def _delivery_failure(self, phone_number: str, verification_id: str) -> DependencyFailure:
        self._audit("deliver_code", phone_number, success=False, verification_id=verification_id)
        return DependencyFailure(
            "Failed to send verification code. Please try again.",
            details={"verification_id": verification_id},
        )

    def _deliver(self, phone_number: str, code: str, verification_id: str) -> None:
        # The stored record is left in place so a resend can reuse it
        try:
            sent = self.notifier.send_verification_code(phone_number, code)
        except Exception as e:
            logger.error(f"Notifier raised while sending code to {mask_phone(phone_number)}: {e}")
            raise self._delivery_failure(phone_number, verification_id) from e
        if not sent:
            logger.warning(f"Failed to send verification code to {mask_phone(phone_number)}")
            raise self._delivery_failure(phone_number, verification_id)

    def request_verification_code(self, phone_number: str) -> str:
        self._require_phone(phone_number)
        logger.info(f"Verification code requested for {mask_phone(phone_number)}")

        code = self.verification.generate_code(phone_number)
        verification_id = self.verification.store_code(phone_number, code)
        self._deliver(phone_number, code, verification_id)

        self._audit("request_code", phone_number, verification_id=verification_id)
        logger.info(f"Verification code sent to {mask_phone(phone_number)}")
        return verification_id

    def resend_verification_code(self, phone_number: str, verification_id: str) -> str:
        self._require_phone(phone_number)
        if not verification_id:
            raise ValidationError("Verification ID is required")

        record = self.verification.get_record(verification_id)
        if record is None or record.phone_number != phone_number or self.clock.now() >= record.expires_at:
            self._audit("resend_code", phone_number, success=False, verification_id=verification_id)
            raise UnauthorizedError("Verification request not found or expired")

        self._deliver(phone_number, record.code, verification_id)
        self._audit("resend_code", phone_number, verification_id=verification_id)
        return verification_id

    def verify_code(self, phone_number: str, code: str, verification_id: Optional[str] = None) -> IssuedToken:
        self._require_phone(phone_number)
        if not code or not code.strip():
            raise ValidationError("Verification code is required")
        if not is_numeric_code(code, self.verification.code_length):
            raise ValidationError(f"Verification code must be {self.verification.code_length} digits")

        logger.info(f"Verifying code for {mask_phone(phone_number)}")
        if verification_id is None:
            verification_id = self.verification.latest_verification_id(phone_number)

        if verification_id is None or not self.verification.validate_code(verification_id, code, phone_number):
            self._audit("verify_code", phone_number, success=False, verification_id=verification_id)
            raise UnauthorizedError("Invalid verification code")

        identity = self.user_directory.get_or_create(phone_number, self.clock.now())
        if not identity.is_active:
            self._audit("verify_code", phone_number, user_id=identity.id, success=False, reason="inactive")
            raise UnauthorizedError("User not found or inactive")

        self.user_directory.update_last_authenticated(identity.id, self.clock.now())
        issued = self.tokens.issue(identity)

        self._audit("verify_code", phone_number, user_id=identity.id)
        logger.info(f"User {identity.id} authenticated with {mask_phone(phone_number)}")
        return issued

    def refresh_token(self, token: str) -> IssuedToken:
        if not token or not token.strip():
            raise UnauthorizedError("Invalid token")

        claims = self.tokens.decode_claims(token, ignore_expiry=True)
        if claims is None:
            logger.warning("Failed to extract claims from token during refresh")
            raise UnauthorizedError("Invalid token")

        identity = self.user_directory.get_by_id(claims.user_id)
        if identity is None or not identity.is_active:
            logger.warning(f"User {claims.user_id} not found or inactive during token refresh")
            self._audit("refresh_token", claims.phone_number, user_id=claims.user_id, success=False)
            raise UnauthorizedError("User not found or inactive")

        self.user_directory.update_last_authenticated(identity.id, self.clock.now())
        issued = self.tokens.issue(identity)

        self._audit("refresh_token", identity.phone_number, user_id=identity.id)
        logger.info(f"Token refreshed for user {identity.id}")
        return issued

    def validate_token(self, token: Optional[str]) -> bool:
        if not token or not token.strip():
            return False
        return self.tokens.validate(token)
