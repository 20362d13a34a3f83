from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

DEFAULT_DB_URL = "sqlite:///data/deptcms.db"


def is_memory_sqlite(db_url: str) -> bool:
    url = make_url(db_url)
    return url.get_backend_name() == "sqlite" and (url.database or ":memory:") == ":memory:"


def get_db_url() -> str:
    return os.getenv("DEPTCMS_DB_URL", DEFAULT_DB_URL)


def _enable_sqlite_foreign_keys(dbapi_connection, _connection_record) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys = ON")
    finally:
        cursor.close()


def create_db_engine(db_url: str) -> Engine:
    url = make_url(db_url)
    echo = os.getenv("DEPTCMS_DB_ECHO", "false").lower() == "true"

    if url.get_backend_name() != "sqlite":
        return create_engine(db_url, echo=echo, pool_pre_ping=True)

    options = {"echo": echo, "connect_args": {"check_same_thread": False}}
    if is_memory_sqlite(db_url):
        # one shared connection, or every thread would see its own empty database
        options["poolclass"] = StaticPool
    else:
        Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(db_url, **options)
    # SQLite ignores REFERENCES clauses unless enabled per connection
    event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


class SessionProvider:
    """Owns the engine for one database URL and hands out ORM sessions."""

    def __init__(self, db_url: Optional[str] = None):
        self.db_url = db_url or get_db_url()
        self.engine = create_db_engine(self.db_url)
        self._factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    def session(self) -> Session:
        return self._factory()

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    @property
    def single_connection(self) -> bool:
        """True when every session shares one connection (in-memory SQLite)."""
        return is_memory_sqlite(self.db_url)

    def dispose(self) -> None:
        self.engine.dispose()
