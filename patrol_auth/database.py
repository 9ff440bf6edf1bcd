from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from .core.config import Settings
from .db import models  # noqa: F401  (registers table models on SQLModel.metadata)


def build_engine(settings: Settings) -> Engine:
    # Choose engine options based on database scheme
    db_url = settings.DATABASE_URL
    engine_kwargs = {}

    if db_url.startswith("sqlite"):
        # SQLite specific connect args
        engine_kwargs.update({
            "connect_args": {"check_same_thread": False}
        })
    else:
        # Better resiliency for managed Postgres
        engine_kwargs.update({
            "pool_pre_ping": True,
            "pool_recycle": 300,
            "pool_size": 5,
            "max_overflow": 10,
        })

    return create_engine(db_url, echo=settings.DEBUG, **engine_kwargs)


def create_db_and_tables(engine: Engine) -> None:
    SQLModel.metadata.create_all(engine)
