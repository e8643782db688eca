"""Persist one structured record per loggable driver command."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional

from .artifacts import ArtifactStore
from .commands import CREATE_SESSION, DriverCommand
from .config import RecorderConfig
from .driver import ScreenshotCapturer
from .models import CommandLogEntry, CommandLogRecord, SessionInfo
from .parsers import ParserTable
from .store import SessionStore

LOGGER = logging.getLogger("session_recorder.recorder")


def is_error_response(response: Any) -> bool:
    """A response is an error when it carries a truthy ``error`` field."""

    if response is None:
        return False
    if isinstance(response, Mapping):
        return bool(response.get("error"))
    return bool(getattr(response, "error", None))


class CommandLogRecorder:
    """Turn a finished command into a command record, optionally with a screenshot."""

    def __init__(
        self,
        session_info: SessionInfo,
        config: RecorderConfig,
        store: SessionStore,
        parsers: ParserTable,
        screenshots: ScreenshotCapturer,
        artifacts: ArtifactStore,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._session = session_info
        self._config = config
        self._store = store
        self._parsers = parsers
        self._screenshots = screenshots
        self._artifacts = artifacts
        self._logger = logger or LOGGER

    async def record(self, command: DriverCommand, response: Any) -> Optional[CommandLogRecord]:
        """Persist the record for ``command``; commands without a parser are skipped."""

        if command.name not in self._parsers:
            return None

        session_id = self._session.session_id
        if command.name == CREATE_SESSION:
            response = self._session.model_dump(mode="json")

        parsed = await self._parsers.parse(command.name, command.driver, command.args, response)

        screen_shot: Optional[str] = None
        if command.name in self._config.take_screenshots_for:
            image = await self._screenshots.capture(command.driver, session_id)
            screen_shot = str(self._artifacts.write_screenshot(session_id, image))
            self._logger.info("Screen shot saved for %s command in session %s", command.name, session_id)

        entry = CommandLogEntry(
            session_id=session_id,
            command_name=command.name,
            title=parsed.title,
            title_info=parsed.title_info,
            params=parsed.params,
            response=parsed.response,
            extra=dict(parsed.model_extra or {}),
            is_error=is_error_response(response),
            screen_shot=screen_shot,
            start_time=command.start_time,
            end_time=command.end_time,
        )
        try:
            return await self._store.create_command_log(entry)
        except Exception:
            self._logger.exception(
                "Failed to persist %s command log for session %s", command.name, session_id
            )
            raise


__all__ = ["CommandLogRecorder", "is_error_response"]
