from __future__ import annotations

from collections.abc import Generator
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from deptguard.settings import get_settings


def build_engine(url: str, **kwargs: Any) -> Engine:
    """
    Create an engine for `url`.

    SQLite connections get `check_same_thread=False` (FastAPI runs sync
    endpoints in a threadpool) and foreign key enforcement, which SQLite leaves
    off by default.
    """

    if not url.startswith("sqlite"):
        return create_engine(url, **kwargs)

    connect_args = {"check_same_thread": False, **kwargs.pop("connect_args", {})}
    engine = create_engine(url, connect_args=connect_args, **kwargs)

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


engine = build_engine(get_settings().resolved_db_url())

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, class_=Session)


def get_db() -> Generator[Session, None, None]:
    """
    Request-scoped session dependency.

    Overlay writes commit explicitly; anything left uncommitted is discarded on close.
    """

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
