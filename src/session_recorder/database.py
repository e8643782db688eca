"""SQLite database models and session utilities for recorded automation sessions."""

from __future__ import annotations

import datetime as dt
from contextlib import contextmanager
from typing import Any, Dict, Generator, Optional

from sqlalchemy import JSON, Boolean, DateTime, Integer, MetaData, String, Text, create_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool


metadata_obj = MetaData()


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class Base(DeclarativeBase):
    metadata = metadata_obj


class SessionRow(Base):
    __tablename__ = "sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    build_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    platform_name: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    automation_name: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    device_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    udid: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    browser_name: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    app: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    capabilities: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    start_time: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    end_time: Mapped[Optional[dt.datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    session_status: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    status_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_test_passed: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    video_path: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)


class CommandLogRow(Base):
    __tablename__ = "command_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(String(100), index=True)
    command_name: Mapped[str] = mapped_column(String(100), index=True)
    title: Mapped[str] = mapped_column(String(255))
    title_info: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    params: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    response: Mapped[Optional[Any]] = mapped_column(JSON, nullable=True)
    extra: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    is_error: Mapped[bool] = mapped_column(Boolean, default=False)
    screen_shot: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    start_time: Mapped[Optional[dt.datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    end_time: Mapped[Optional[dt.datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class LogLineRow(Base):
    __tablename__ = "logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(String(100), index=True)
    timestamp: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True))
    log_type: Mapped[str] = mapped_column(String(20))
    level: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    message: Mapped[str] = mapped_column(Text, default="")


def create_session_factory(database_url: str, echo: bool = False) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory and make sure the schema exists."""

    options: Dict[str, Any] = {"echo": echo}
    if database_url in ("sqlite://", "sqlite:///:memory:"):
        # Store calls run on worker threads; they must all see the same in-memory database.
        options.update(poolclass=StaticPool, connect_args={"check_same_thread": False})
    engine = create_engine(database_url, **options)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False, class_=Session)


@contextmanager
def session_scope(session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Provide a transactional scope around a series of operations."""

    session = session_factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


__all__ = [
    "Base",
    "CommandLogRow",
    "LogLineRow",
    "SessionRow",
    "create_session_factory",
    "session_scope",
    "utcnow",
]
