from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlmodel import Session, SQLModel, create_engine

from .models import UserSetting


DEFAULT_SETTINGS = {"autoplay": "true"}

# Seconds a writer waits on SQLite's lock before giving up.
SQLITE_BUSY_TIMEOUT = 30


def _sqlite_on_connect(dbapi_conn, _record) -> None:
    cursor = dbapi_conn.cursor()
    # Cascades only fire with foreign keys on, and SQLite enables them per connection.
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


def make_engine(database_url: str):
    connect_args = {}
    is_sqlite = database_url.startswith("sqlite")
    if is_sqlite:
        connect_args = {"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT}
    engine = create_engine(database_url, echo=False, connect_args=connect_args)
    if is_sqlite:
        event.listen(engine, "connect", _sqlite_on_connect)
    return engine


def init_db(engine) -> None:
    """Create missing tables and seed default settings. Safe to run on every start."""
    SQLModel.metadata.create_all(engine)

    with Session(engine) as session:
        for key, value in DEFAULT_SETTINGS.items():
            stmt = (
                sqlite_insert(UserSetting)
                .values(key=key, value=value)
                .on_conflict_do_nothing(index_elements=["key"])
            )
            session.exec(stmt)
        session.commit()
