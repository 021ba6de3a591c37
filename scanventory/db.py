from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from scanventory.config import settings
from scanventory.models import Base


def _engine_connect_args(db_url: str) -> dict:
    if db_url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(db_url: str) -> Engine:
    built = create_engine(db_url, future=True, connect_args=_engine_connect_args(db_url))
    if db_url.startswith("sqlite"):
        # SQLite only honours ON DELETE CASCADE with foreign keys switched on per connection.
        event.listen(built, "connect", _enable_sqlite_foreign_keys)
    return built


def build_sessionmaker(bind: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=bind, autoflush=False, autocommit=False, future=True)


engine: Engine = build_engine(settings.SCANVENTORY_DB_URL)
SessionLocal = build_sessionmaker(engine)


def init_db(bind: Engine | None = None) -> None:
    Base.metadata.create_all(bind=bind or engine)


def get_session():
    session: Session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
