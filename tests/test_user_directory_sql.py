from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from patrol_auth.database import build_engine, create_db_and_tables
from patrol_auth.exceptions import DependencyFailure
from patrol_auth.infrastructure.persistence.sqlalchemy.repositories.user_directory_sql import SqlUserDirectory


@pytest.fixture
def directory(settings):
    engine = build_engine(settings)
    create_db_and_tables(engine)
    return SqlUserDirectory(engine)


def test_get_or_create_creates_active_identity_once(directory, clock):
    created = directory.get_or_create("+15551234567", clock.now())
    assert created.is_active is True
    assert created.phone_number == "+15551234567"
    assert created.last_authenticated_at == clock.now()

    again = directory.get_or_create("+15551234567", clock.now() + timedelta(minutes=5))
    assert again.id == created.id
    assert directory.get_by_id(created.id).phone_number == "+15551234567"


def test_update_last_authenticated(directory, clock):
    identity = directory.get_or_create("+15551234567", clock.now())
    later = clock.now() + timedelta(hours=1)
    directory.update_last_authenticated(identity.id, later)
    assert directory.get_by_phone("+15551234567").last_authenticated_at == later


def test_missing_users(directory, clock):
    assert directory.get_by_id("nope") is None
    assert directory.get_by_phone("+15550000000") is None
    directory.update_last_authenticated("nope", clock.now())


def test_database_errors_surface_as_dependency_failure(directory, monkeypatch):
    from patrol_auth.infrastructure.persistence.sqlalchemy.repositories import user_directory_sql as mod

    class BrokenSession:
        def __init__(self, engine):
            pass

        def __enter__(self):
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        def __exit__(self, *exc):
            return False

    monkeypatch.setattr(mod, "Session", BrokenSession)
    with pytest.raises(DependencyFailure) as exc:
        directory.get_by_id("user-1")
    assert exc.value.retryable is True
