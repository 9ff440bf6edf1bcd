import json
import logging
from typing import Optional, Dict, Any

from ...application.ports.audit_logger import AuditLogger
from ...application.ports.clock import Clock
from ...utils import hash_phone_number


class StdAuditLogger(AuditLogger):
    def __init__(self, clock: Clock) -> None:
        self._logger = logging.getLogger(__name__)
        self._clock = clock

    def log(self, action: str, phone: str, user_id: Optional[str] = None, success: bool = True, details: Optional[Dict[str, Any]] = None) -> None:
        entry = {
            "timestamp": self._clock.now().isoformat(),
            "action": action,
            "phone_hash": hash_phone_number(phone),
            "user_id": user_id,
            "success": success,
            "details": details or {},
        }
        self._logger.info(f"AUDIT: {json.dumps(entry, default=str)}")
