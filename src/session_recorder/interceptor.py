"""Command interception: the entry point every driver command of a session goes through."""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
from collections.abc import Mapping
from typing import Any, Callable, Dict, Optional, Sequence

from .artifacts import ArtifactStore
from .commands import CREATE_SESSION, DELETE_SESSION, EXECUTE, CommandKind, DriverCommand
from .config import RecorderConfig
from .dashboard import DashboardCommands, script_name
from .database import utcnow
from .driver import DriverServices, LogSource, ProxyInterceptor
from .lifecycle import EXPECTED_FAILURE_COMMANDS, SessionLifecycleTracker
from .log_tail import LogTailTracker
from .models import LogLineEntry, LogType, SessionInfo
from .parsers import ParserTable
from .proxy import PROXY_COMMAND, RoutedCommand, route_to_command, synchronize
from .recorder import CommandLogRecorder
from .store import SessionStore

LOGGER = logging.getLogger("session_recorder.interceptor")

SERVER_LOGS = "server"


def failure_payload(exc: BaseException) -> Dict[str, Any]:
    """Error-shaped response recorded for a command whose continuation raised."""

    error = getattr(exc, "error", None) or type(exc).__name__
    message = getattr(exc, "message", None) or str(exc)
    return {"error": str(error), "message": str(message)}


class CommandInterceptor:
    """
    Wrap every command of one session.

    Commands are expected one at a time, in the order the client issued
    them. Each command is classified, the matching lifecycle or dashboard
    work is done, new device log lines are persisted, the continuation is
    awaited and exactly one command record is written for it, whether it
    succeeded or failed. Failures are re-raised unchanged.
    """

    def __init__(
        self,
        session_info: SessionInfo,
        *,
        store: SessionStore,
        recorder: CommandLogRecorder,
        lifecycle: SessionLifecycleTracker,
        dashboard: DashboardCommands,
        log_source: LogSource,
        proxy: Optional[ProxyInterceptor] = None,
        router: Callable[[Sequence[Any]], RoutedCommand] = route_to_command,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._session = session_info
        self._session.is_completed = False
        self._store = store
        self._recorder = recorder
        self._lifecycle = lifecycle
        self._dashboard = dashboard
        self._log_source = log_source
        self._proxy = proxy
        self._router = router
        self._log_tail: LogTailTracker[Any] = LogTailTracker()
        self._logger = logger or LOGGER

    @classmethod
    def create(
        cls,
        session_info: SessionInfo,
        config: RecorderConfig,
        store: SessionStore,
        parsers: ParserTable,
        services: DriverServices,
        logger: Optional[logging.Logger] = None,
    ) -> "CommandInterceptor":
        """Wire the recorder, lifecycle tracker and dashboard scripts for one session."""

        artifacts = ArtifactStore(config, logger=logger)
        recorder = CommandLogRecorder(
            session_info,
            config,
            store,
            parsers,
            services.screenshots,
            artifacts,
            logger=logger,
        )
        lifecycle = SessionLifecycleTracker(
            session_info,
            store,
            recorder,
            artifacts,
            services.recording,
            expected_failures=EXPECTED_FAILURE_COMMANDS,
            logger=logger,
        )
        return cls(
            session_info,
            store=store,
            recorder=recorder,
            lifecycle=lifecycle,
            dashboard=DashboardCommands.for_session(session_info, store, logger=logger),
            log_source=services.logs,
            proxy=services.proxy,
            logger=logger,
        )

    @property
    def session_id(self) -> str:
        return self._session.session_id

    @property
    def lifecycle(self) -> SessionLifecycleTracker:
        return self._lifecycle

    def classify(self, command: DriverCommand) -> CommandKind:
        if command.name == CREATE_SESSION:
            return CommandKind.SESSION_START
        if command.name == DELETE_SESSION:
            return CommandKind.SESSION_END
        if command.name == EXECUTE and command.args and self._dashboard.is_dashboard_command(command.args[0]):
            return CommandKind.DASHBOARD
        if command.name == PROXY_COMMAND:
            return CommandKind.PROXY
        return CommandKind.ORDINARY

    async def handle(self, command: DriverCommand) -> Any:
        """Run ``command`` through the interception pipeline and return its result."""

        command.kind = self.classify(command)
        proxy_payload: Any = None
        if command.kind is CommandKind.SESSION_START:
            return await self._lifecycle.start(command)
        if command.kind is CommandKind.SESSION_END:
            await self._lifecycle.terminate(command)
        elif command.kind is CommandKind.DASHBOARD:
            await self._run_dashboard_script(command)
            return True
        elif command.kind is CommandKind.PROXY:
            proxy_payload = self._route_proxied_command(command)
            self._logger.info("Received %s command for %s", PROXY_COMMAND, command.name)

        self._logger.info("New command received %s for session %s", command.name, self.session_id)
        await self._save_device_logs(command)
        if command.kind is CommandKind.PROXY:
            self._attach_proxy_response(command, proxy_payload)

        command.start_time = utcnow()
        try:
            result = await command.next()
        except Exception as exc:
            command.end_time = utcnow()
            failure = failure_payload(exc)
            self._logger.error(
                "Error occurred while executing %s command for session %s: %s",
                command.name,
                self.session_id,
                failure,
            )
            try:
                await self._recorder.record(command, failure)
            except Exception:
                self._logger.exception(
                    "Could not record failed %s command for session %s", command.name, self.session_id
                )
            raise

        command.end_time = utcnow()
        self._logger.info("Received response for command %s for session %s", command.name, self.session_id)
        await self._recorder.record(command, result)
        return result

    async def _run_dashboard_script(self, command: DriverCommand) -> None:
        name = script_name(command.args[0])
        arg = command.args[1] if len(command.args) > 1 else None
        self._logger.info("Running dashboard script %s for session %s", name, self.session_id)
        await self._dashboard.dispatch(name, arg)

    def _route_proxied_command(self, command: DriverCommand) -> Any:
        """Rename a proxied request after the driver command it carries; returns the proxy payload."""

        payload = command.args[1] if len(command.args) > 1 else None
        routed = self._router(command.args)
        command.name = routed.name
        command.args = list(routed.args)
        return payload

    def _attach_proxy_response(self, command: DriverCommand, payload: Any) -> None:
        # The side task must be created right before the continuation that joins it.
        if self._proxy is None:
            self._logger.warning("No proxy interceptor configured; %s response is not captured", command.name)
            return
        side = asyncio.ensure_future(self._proxy.intercept(payload))
        command.next = synchronize(command.next, side, logger=self._logger)

    async def _save_device_logs(self, command: DriverCommand) -> bool:
        try:
            snapshot = self._log_source.get_logs(command.driver, self.session_id, SERVER_LOGS)
        except Exception as exc:
            self._logger.warning("Device logs unavailable for session %s: %s", self.session_id, exc)
            return False

        new_lines = self._log_tail.capture(snapshot)
        if not new_lines:
            return False
        entries = [self._to_log_line(line) for line in new_lines]
        try:
            await self._store.bulk_create_log_lines(entries)
        except Exception:
            self._log_tail.rewind(len(new_lines))
            self._logger.error(
                "Failed to persist %d device log line(s) for session %s", len(entries), self.session_id
            )
            raise
        return True

    def _to_log_line(self, line: Any) -> LogLineEntry:
        if isinstance(line, Mapping):
            return LogLineEntry(
                session_id=self.session_id,
                timestamp=_parse_timestamp(line.get("timestamp")),
                log_type=LogType.DEVICE,
                level=line.get("level"),
                message=str(line.get("message", "")),
            )
        return LogLineEntry(
            session_id=self.session_id,
            timestamp=utcnow(),
            log_type=LogType.DEVICE,
            message=str(line),
        )


def _parse_timestamp(value: Any) -> dt.datetime:
    if isinstance(value, dt.datetime):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return dt.datetime.fromtimestamp(value / 1000, tz=dt.timezone.utc)
    if isinstance(value, str):
        try:
            return dt.datetime.fromisoformat(value)
        except ValueError:
            pass
    return utcnow()


__all__ = ["CommandInterceptor", "CommandKind", "DriverCommand", "failure_payload"]
