import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from .....db.models import User
from .....application.ports.user_directory import Identity, UserDirectory
from .....exceptions import DependencyFailure
from .....utils import mask_phone

logger = logging.getLogger(__name__)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite drops tzinfo; stored values are always UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqlUserDirectory(UserDirectory):
    """UserDirectory backed by the ``users`` table; one session per call."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def _to_identity(self, user: User) -> Identity:
        return Identity(
            id=user.id,
            phone_number=user.phone,
            is_active=bool(user.is_active),
            last_authenticated_at=_as_utc(user.last_authenticated_at),
            created_at=_as_utc(user.created_at),
        )

    def get_by_phone(self, phone_number: str) -> Optional[Identity]:
        try:
            with Session(self.engine) as session:
                user = session.exec(select(User).where(User.phone == phone_number)).first()
                return self._to_identity(user) if user else None
        except SQLAlchemyError as e:
            logger.error(f"Error loading user by phone {mask_phone(phone_number)}: {e}")
            raise DependencyFailure("User directory unavailable") from e

    def get_by_id(self, user_id: str) -> Optional[Identity]:
        try:
            with Session(self.engine) as session:
                user = session.get(User, user_id)
                return self._to_identity(user) if user else None
        except SQLAlchemyError as e:
            logger.error(f"Error loading user {user_id}: {e}")
            raise DependencyFailure("User directory unavailable") from e

    def get_or_create(self, phone_number: str, now: datetime) -> Identity:
        existing = self.get_by_phone(phone_number)
        if existing is not None:
            return existing
        try:
            with Session(self.engine) as session:
                user = User(phone=phone_number, is_active=True, last_authenticated_at=now, created_at=now, updated_at=now)
                session.add(user)
                try:
                    session.commit()
                except IntegrityError:
                    # Created concurrently by another request
                    session.rollback()
                    user = session.exec(select(User).where(User.phone == phone_number)).one()
                else:
                    session.refresh(user)
                    logger.info(f"New user created with ID {user.id} for {mask_phone(phone_number)}")
                return self._to_identity(user)
        except SQLAlchemyError as e:
            logger.error(f"Error creating user for {mask_phone(phone_number)}: {e}")
            raise DependencyFailure("User directory unavailable") from e

    def update_last_authenticated(self, user_id: str, when: datetime) -> None:
        try:
            with Session(self.engine) as session:
                user = session.get(User, user_id)
                if not user:
                    return
                user.last_authenticated_at = when
                user.updated_at = when
                session.add(user)
                session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error updating last authentication for user {user_id}: {e}")
            raise DependencyFailure("User directory unavailable") from e
