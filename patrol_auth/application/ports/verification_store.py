from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Protocol


@dataclass(frozen=True)
class VerificationRecord:
    verification_id: str
    phone_number: str
    code: str
    expires_at: datetime
    created_at: datetime


class VerificationRecordStore(Protocol):
    """Keyed storage for verification records.

    Implementations must be safe for concurrent use from many worker threads.
    """

    def add(self, record: VerificationRecord) -> bool:
        """Insert the record unless its id is already present. Returns False on collision."""
        ...

    def get(self, verification_id: str) -> Optional[VerificationRecord]:
        ...

    def remove(self, verification_id: str) -> bool:
        """Remove the record; removing a missing id is a no-op returning False."""
        ...

    def find_by_phone(self, phone_number: str) -> List[VerificationRecord]:
        ...

    def expired_ids(self, now: datetime) -> List[str]:
        """Snapshot of ids whose records expired strictly before ``now``."""
        ...

    def __len__(self) -> int:
        ...
