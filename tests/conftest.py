from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple
import uuid

import pytest

from patrol_auth.application.ports.user_directory import Identity
from patrol_auth.core.config import Settings

TEST_SECRET = "test-signing-key-0123456789abcdef-0123456789"


class FakeClock:
    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2026, 3, 1, 8, 0, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


class FakeUserDirectory:
    def __init__(self):
        self.users: Dict[str, Identity] = {}
        self.touched: List[Tuple[str, datetime]] = []

    def add(self, phone_number: str, is_active: bool = True) -> Identity:
        identity = Identity(
            id=f"user-{len(self.users) + 1}",
            phone_number=phone_number,
            is_active=is_active,
            last_authenticated_at=None,
            created_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
        )
        self.users[identity.id] = identity
        return identity

    def get_by_phone(self, phone_number: str) -> Optional[Identity]:
        return next((u for u in self.users.values() if u.phone_number == phone_number), None)

    def get_by_id(self, user_id: str) -> Optional[Identity]:
        return self.users.get(user_id)

    def get_or_create(self, phone_number: str, now: datetime) -> Identity:
        existing = self.get_by_phone(phone_number)
        if existing:
            return existing
        identity = Identity(str(uuid.uuid4()), phone_number, True, now, now)
        self.users[identity.id] = identity
        return identity

    def update_last_authenticated(self, user_id: str, when: datetime) -> None:
        self.users[user_id].last_authenticated_at = when
        self.touched.append((user_id, when))


class FakeNotifier:
    def __init__(self, succeed: bool = True):
        self.succeed = succeed
        self.sent: List[Tuple[str, str]] = []

    def send_verification_code(self, phone_number: str, code: str) -> bool:
        if not self.succeed:
            return False
        self.sent.append((phone_number, code))
        return True


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def users():
    return FakeUserDirectory()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        JWT_SECRET_KEY=TEST_SECRET,
        JWT_ISSUER="security-patrol-api",
        JWT_AUDIENCE="security-patrol-app",
        DATABASE_URL=f"sqlite:///{tmp_path / 'auth.db'}",
        SMS_PROVIDER="log",
        CODE_SWEEP_INTERVAL_SECONDS=3600,
    )
