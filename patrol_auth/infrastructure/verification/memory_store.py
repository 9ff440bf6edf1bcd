import threading
from datetime import datetime
from typing import Dict, List, Optional

from ...application.ports.verification_store import VerificationRecord, VerificationRecordStore


class InMemoryVerificationStore(VerificationRecordStore):
    """Process-local record store guarded by a single lock.

    The lock is held for one dict operation at a time, never across a sweep.
    Records live only as long as the process; multi-instance deployments need
    a shared store behind the same port.
    """

    def __init__(self) -> None:
        self._records: Dict[str, VerificationRecord] = {}
        self._lock = threading.Lock()

    def add(self, record: VerificationRecord) -> bool:
        with self._lock:
            if record.verification_id in self._records:
                return False
            self._records[record.verification_id] = record
            return True

    def get(self, verification_id: str) -> Optional[VerificationRecord]:
        with self._lock:
            return self._records.get(verification_id)

    def remove(self, verification_id: str) -> bool:
        with self._lock:
            return self._records.pop(verification_id, None) is not None

    def find_by_phone(self, phone_number: str) -> List[VerificationRecord]:
        with self._lock:
            return [r for r in self._records.values() if r.phone_number == phone_number]

    def expired_ids(self, now: datetime) -> List[str]:
        with self._lock:
            return [vid for vid, r in self._records.items() if r.expires_at < now]

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
