from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from clinic_ledger.core.config import settings


def _is_sqlite(dsn: str) -> bool:
    return dsn.startswith("sqlite")


def build_engine(dsn: str) -> Engine:
    """Create the ledger engine. SQLite connections enforce foreign keys."""
    connect_args = {"check_same_thread": False} if _is_sqlite(dsn) else {}
    new_engine = create_engine(dsn, connect_args=connect_args, echo=settings.DEBUG)

    if _is_sqlite(dsn):

        @event.listens_for(new_engine, "connect")
        def _enable_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys = ON")
            cursor.close()

    return new_engine


engine = build_engine(settings.APP_DATABASE_DSN)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base: Any = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session. Services commit their own units of work."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create ledger tables that do not exist yet. Migrations are the normal path."""
    import clinic_ledger.models  # noqa: F401

    Base.metadata.create_all(bind=engine)
