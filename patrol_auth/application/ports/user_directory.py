from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol


@dataclass
class Identity:
    id: str
    phone_number: str
    is_active: bool
    last_authenticated_at: Optional[datetime]
    created_at: datetime


class UserDirectory(Protocol):
    """Identity records keyed by phone number and user id.

    Implementations raise DependencyFailure when the backing store is unavailable.
    """

    def get_by_phone(self, phone_number: str) -> Optional[Identity]:
        ...

    def get_by_id(self, user_id: str) -> Optional[Identity]:
        ...

    def get_or_create(self, phone_number: str, now: datetime) -> Identity:
        ...

    def update_last_authenticated(self, user_id: str, when: datetime) -> None:
        ...
