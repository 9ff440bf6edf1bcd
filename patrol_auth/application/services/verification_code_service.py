import hmac
import logging
import secrets
import uuid
from datetime import datetime, timedelta
from typing import Optional

from ..ports.clock import Clock
from ..ports.verification_store import VerificationRecord, VerificationRecordStore
from ...exceptions import ValidationError
from ...utils import mask_phone

logger = logging.getLogger(__name__)

MAX_ID_ATTEMPTS = 3


class VerificationStoreError(RuntimeError):
    """No unique verification id could be allocated."""


class VerificationCodeService:
    """Generates, stores and checks short-lived numeric verification codes.

    Codes stay valid for every matching attempt until they expire, unless
    ``single_use`` is set, in which case the first successful match consumes
    the record.
    """

    def __init__(
        self,
        store: VerificationRecordStore,
        clock: Clock,
        code_length: int = 6,
        code_ttl: timedelta = timedelta(minutes=10),
        single_use: bool = False,
    ):
        if code_length <= 0:
            raise ValueError("code_length must be positive")
        self.store = store
        self.clock = clock
        self.code_length = code_length
        self.code_ttl = code_ttl
        self.single_use = single_use

    def generate_code(self, phone_number: str) -> str:
        if not phone_number:
            raise ValidationError("Phone number is required")
        number = secrets.randbelow(10 ** self.code_length)
        return f"{number:0{self.code_length}d}"

    def store_code(self, phone_number: str, code: str) -> str:
        if not phone_number:
            raise ValidationError("Phone number is required")
        if not code:
            raise ValidationError("Verification code is required")

        now = self.clock.now()
        for attempt in range(1, MAX_ID_ATTEMPTS + 1):
            record = VerificationRecord(
                verification_id=str(uuid.uuid4()),
                phone_number=phone_number,
                code=code,
                expires_at=now + self.code_ttl,
                created_at=now,
            )
            if self.store.add(record):
                logger.info(f"Stored verification code for {mask_phone(phone_number)} with ID {record.verification_id}")
                return record.verification_id
            logger.warning(f"Verification ID collision on attempt {attempt} for {mask_phone(phone_number)}")

        raise VerificationStoreError(f"Could not allocate a unique verification ID after {MAX_ID_ATTEMPTS} attempts")

    def validate_code(self, verification_id: str, code: str, phone_number: Optional[str] = None) -> bool:
        if not verification_id or not code:
            return False

        record = self.store.get(verification_id)
        if record is None:
            logger.warning(f"Verification ID not found: {verification_id}")
            return False

        if self.clock.now() >= record.expires_at:
            logger.warning(f"Verification code expired for ID: {verification_id}")
            self.store.remove(verification_id)
            return False

        if phone_number is not None and phone_number != record.phone_number:
            logger.warning(f"Verification ID {verification_id} does not belong to {mask_phone(phone_number)}")
            return False

        if not hmac.compare_digest(record.code.encode("utf-8"), code.encode("utf-8")):
            logger.warning(f"Invalid verification code provided for ID: {verification_id}")
            return False

        # Only the caller whose remove succeeds consumes a single-use code
        if self.single_use and not self.store.remove(verification_id):
            logger.warning(f"Verification code already consumed for ID: {verification_id}")
            return False
        logger.info(f"Verification code validated for ID: {verification_id}")
        return True

    def latest_verification_id(self, phone_number: str) -> Optional[str]:
        now = self.clock.now()
        live = [r for r in self.store.find_by_phone(phone_number) if r.expires_at > now]
        if not live:
            return None
        return max(live, key=lambda r: r.created_at).verification_id

    def get_record(self, verification_id: str) -> Optional[VerificationRecord]:
        if not verification_id:
            return None
        return self.store.get(verification_id)

    def get_expiration(self, verification_id: str) -> Optional[datetime]:
        record = self.get_record(verification_id)
        return record.expires_at if record else None

    def sweep_expired(self) -> int:
        now = self.clock.now()
        removed = 0
        for verification_id in self.store.expired_ids(now):
            if self.store.remove(verification_id):
                removed += 1
        if removed:
            logger.info(f"Removed {removed} expired verification codes")
        return removed
