"""Dashboard scripts invoked from tests through ``driver.execute_script("dashboard: ...")``."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Iterator, Mapping, Optional

from .database import utcnow
from .errors import RegistrationError, UnknownDashboardScript
from .models import LogLineEntry, LogType, SessionInfo, SessionStatus
from .store import SessionStore

LOGGER = logging.getLogger("session_recorder.dashboard")

DASHBOARD_PREFIX = "dashboard"

DashboardHandler = Callable[[Optional[Any]], Awaitable[Any]]


def script_name(arg: Any) -> Optional[str]:
    """Extract ``myAction`` from ``"dashboard: myAction"``; ``None`` for anything else."""

    if not isinstance(arg, str) or ":" not in arg:
        return None
    prefix, _, name = arg.partition(":")
    if prefix.strip() != DASHBOARD_PREFIX:
        return None
    return name.strip() or None


class DashboardCommands:
    """Routing table from dashboard script name to its handler."""

    def __init__(self, handlers: Optional[Mapping[str, DashboardHandler]] = None) -> None:
        self._handlers: Dict[str, DashboardHandler] = {}
        for name, handler in (handlers or {}).items():
            self.register(name, handler)

    def register(self, name: str, handler: DashboardHandler) -> None:
        if not name:
            raise RegistrationError("Dashboard script name must not be empty")
        if not callable(handler):
            raise RegistrationError(f"Dashboard handler for {name!r} is not callable")
        if name in self._handlers:
            raise RegistrationError(f"Dashboard script {name!r} is already registered")
        self._handlers[name] = handler

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def __iter__(self) -> Iterator[str]:
        return iter(self._handlers)

    def is_dashboard_command(self, arg: Any) -> bool:
        name = script_name(arg)
        return name is not None and name in self._handlers

    async def dispatch(self, name: str, arg: Optional[Any] = None) -> Any:
        handler = self._handlers.get(name)
        if handler is None:
            raise UnknownDashboardScript(name)
        return await handler(arg)

    @classmethod
    def for_session(
        cls,
        session_info: SessionInfo,
        store: SessionStore,
        logger: Optional[logging.Logger] = None,
    ) -> "DashboardCommands":
        """Build the table of built-in scripts bound to one session."""

        scripts = SessionScripts(session_info, store, logger=logger)
        return cls(
            {
                "setTestName": scripts.set_test_name,
                "updateStatus": scripts.update_status,
                "debug": scripts.debug,
            }
        )


class SessionScripts:
    """Built-in dashboard scripts that annotate the running session."""

    def __init__(self, session_info: SessionInfo, store: SessionStore, logger: Optional[logging.Logger] = None) -> None:
        self._session = session_info
        self._store = store
        self._logger = logger or LOGGER

    async def set_test_name(self, name: Optional[Any]) -> None:
        if isinstance(name, Mapping):
            name = name.get("name")
        if not name:
            self._logger.warning("setTestName called without a name for session %s", self._session.session_id)
            return
        self._session.name = str(name)
        await self._store.update_session(self._session.session_id, {"name": str(name)})

    async def update_status(self, payload: Optional[Any]) -> None:
        """Record a verdict chosen by the test itself; derivation at session end keeps it."""

        if not isinstance(payload, Mapping) or not payload.get("status"):
            raise ValueError("updateStatus expects an object with a 'status' of 'passed' or 'failed'")
        status = str(payload["status"]).strip().upper()
        try:
            verdict = SessionStatus(status)
        except ValueError as exc:
            raise ValueError(f"Unsupported session status {payload['status']!r}") from exc
        await self._store.update_session(
            self._session.session_id,
            {
                "session_status": verdict,
                "is_test_passed": verdict is SessionStatus.PASSED,
                "status_message": payload.get("message"),
            },
        )
        self._logger.info("Session %s marked %s by test", self._session.session_id, verdict.value)

    async def debug(self, message: Optional[Any]) -> None:
        if isinstance(message, Mapping):
            message = message.get("message")
        await self._store.bulk_create_log_lines(
            [
                LogLineEntry(
                    session_id=self._session.session_id,
                    timestamp=utcnow(),
                    log_type=LogType.DEBUG,
                    level="debug",
                    message="" if message is None else str(message),
                )
            ]
        )


__all__ = ["DASHBOARD_PREFIX", "DashboardCommands", "SessionScripts", "script_name"]
