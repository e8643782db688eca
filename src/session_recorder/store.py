"""Persistence layer for sessions, command records and device log lines."""
from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from typing import Any, Callable, Iterable, List, Mapping, Optional, Sequence, TypeVar

from sqlalchemy import func, select, update
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .database import CommandLogRow, LogLineRow, SessionRow, create_session_factory, session_scope
from .errors import PersistenceError
from .models import CommandLogEntry, CommandLogRecord, LogLineEntry, LogType, SessionRecord

LOGGER = logging.getLogger("session_recorder.store")

T = TypeVar("T")

SESSION_FIELDS = frozenset(column.name for column in SessionRow.__table__.columns) - {"id", "session_id"}
# Serialised by ``jsonable`` straight from the model so self-referencing payloads fail cleanly.
_JSON_COLUMNS = ("params", "response", "extra")


def jsonable(value: Any) -> Any:
    """Coerce driver payloads into something the JSON columns accept.

    Payloads that cannot be serialised at all, such as self-referencing
    structures, raise :class:`PersistenceError`.
    """

    if value is None:
        return None
    try:
        return json.loads(json.dumps(value, default=str))
    except (TypeError, ValueError) as exc:
        raise PersistenceError(f"Payload is not JSON serialisable: {exc}") from exc


class SessionStore:
    """
    SQLite-backed store used by the recorder.

    Every public operation is a single transaction executed on a worker
    thread, so callers on the event loop never block on disk I/O. Failures
    are wrapped in :class:`PersistenceError`; a locked database is retried a
    few times first.
    """

    def __init__(self, session_factory: sessionmaker[Session], logger: Optional[logging.Logger] = None) -> None:
        self._session_factory = session_factory
        self._logger = logger or LOGGER

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> "SessionStore":
        return cls(create_session_factory(database_url, echo=echo))

    async def create_session(self, record: SessionRecord) -> SessionRecord:
        def _create(session: Session) -> SessionRecord:
            values = record.model_dump(mode="python")
            values["session_status"] = _enum_value(values.get("session_status"))
            values["capabilities"] = jsonable(values.get("capabilities") or {})
            row = SessionRow(**values)
            session.add(row)
            session.flush()
            return SessionRecord.model_validate(row)

        return await self._call("create_session", _create)

    async def update_session(self, session_id: str, fields: Mapping[str, Any]) -> int:
        """Apply ``fields`` to the session row in one statement; returns the affected row count."""

        unknown = set(fields) - SESSION_FIELDS
        if unknown:
            raise ValueError(f"Unknown session fields: {sorted(unknown)}")
        values = {key: _enum_value(value) for key, value in fields.items()}

        def _update(session: Session) -> int:
            result = session.execute(update(SessionRow).where(SessionRow.session_id == session_id).values(**values))
            return int(result.rowcount or 0)

        return await self._call("update_session", _update)

    async def find_session(self, session_id: str) -> Optional[SessionRecord]:
        def _find(session: Session) -> Optional[SessionRecord]:
            row = session.scalars(select(SessionRow).where(SessionRow.session_id == session_id)).first()
            return SessionRecord.model_validate(row) if row else None

        return await self._call("find_session", _find)

    async def list_sessions(self) -> List[SessionRecord]:
        def _list(session: Session) -> List[SessionRecord]:
            rows = session.scalars(select(SessionRow).order_by(SessionRow.start_time)).all()
            return [SessionRecord.model_validate(row) for row in rows]

        return await self._call("list_sessions", _list)

    async def create_command_log(self, entry: CommandLogEntry) -> CommandLogRecord:
        def _create(session: Session) -> CommandLogRecord:
            values = entry.model_dump(mode="python", exclude=set(_JSON_COLUMNS))
            for key in _JSON_COLUMNS:
                values[key] = jsonable(getattr(entry, key))
            row = CommandLogRow(**values)
            session.add(row)
            session.flush()
            return CommandLogRecord.model_validate(row)

        return await self._call("create_command_log", _create)

    async def count_command_logs(
        self,
        session_id: str,
        *,
        is_error: Optional[bool] = None,
        exclude_commands: Iterable[str] = (),
    ) -> int:
        excluded = list(exclude_commands)

        def _count(session: Session) -> int:
            query = select(func.count(CommandLogRow.id)).where(CommandLogRow.session_id == session_id)
            if is_error is not None:
                query = query.where(CommandLogRow.is_error == is_error)
            if excluded:
                query = query.where(CommandLogRow.command_name.not_in(excluded))
            return int(session.scalar(query) or 0)

        return await self._call("count_command_logs", _count)

    async def list_command_logs(self, session_id: str) -> List[CommandLogRecord]:
        def _list(session: Session) -> List[CommandLogRecord]:
            rows = session.scalars(
                select(CommandLogRow).where(CommandLogRow.session_id == session_id).order_by(CommandLogRow.id)
            ).all()
            return [CommandLogRecord.model_validate(row) for row in rows]

        return await self._call("list_command_logs", _list)

    async def bulk_create_log_lines(self, lines: Sequence[LogLineEntry]) -> int:
        if not lines:
            return 0

        def _create(session: Session) -> int:
            session.add_all(
                LogLineRow(
                    session_id=line.session_id,
                    timestamp=line.timestamp,
                    log_type=line.log_type.value,
                    level=line.level,
                    message=line.message,
                )
                for line in lines
            )
            return len(lines)

        return await self._call("bulk_create_log_lines", _create)

    async def list_log_lines(self, session_id: str, log_type: Optional[LogType] = None) -> List[LogLineEntry]:
        def _list(session: Session) -> List[LogLineEntry]:
            query = select(LogLineRow).where(LogLineRow.session_id == session_id)
            if log_type is not None:
                query = query.where(LogLineRow.log_type == log_type.value)
            rows = session.scalars(query.order_by(LogLineRow.id)).all()
            return [LogLineEntry.model_validate(row) for row in rows]

        return await self._call("list_log_lines", _list)

    async def _call(self, operation: str, work: Callable[[Session], T]) -> T:
        try:
            return await asyncio.to_thread(self._transaction, work)
        except SQLAlchemyError as exc:
            self._logger.error("Store operation %s failed: %s", operation, exc)
            raise PersistenceError(f"{operation} failed: {exc}") from exc

    @retry(
        retry=retry_if_exception_type(OperationalError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.05, max=1),
        reraise=True,
    )
    def _transaction(self, work: Callable[[Session], T]) -> T:
        with session_scope(self._session_factory) as session:
            return work(session)


def _enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


__all__ = ["SessionStore", "jsonable"]
