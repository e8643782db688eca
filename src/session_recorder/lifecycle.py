"""Session lifecycle: start-up, termination and verdict derivation."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, Optional, Sequence

from .artifacts import ArtifactStore
from .commands import DriverCommand
from .database import utcnow
from .driver import RecordingController
from .errors import SessionStateError
from .models import SessionInfo, SessionRecord, SessionStatus
from .recorder import CommandLogRecorder
from .store import SessionStore

LOGGER = logging.getLogger("session_recorder.lifecycle")

# Element lookups and visibility checks fail routinely while a test polls for UI state.
EXPECTED_FAILURE_COMMANDS: Sequence[str] = ("findElement", "elementDisplayed")


class SessionState(str, Enum):
    UNSTARTED = "unstarted"
    ACTIVE = "active"
    TERMINATED = "terminated"


def derive_verdict(error_count: int, existing: Optional[SessionRecord]) -> Dict[str, Any]:
    """
    Return the verdict fields that still need to be written.

    Fields already set on ``existing`` (for example by a dashboard
    ``updateStatus`` call) are left out so they are never overwritten.
    """
    fields: Dict[str, Any] = {}
    if existing is None or not existing.session_status:
        fields["session_status"] = SessionStatus.FAILED if error_count > 0 else SessionStatus.PASSED
    if existing is None or existing.is_test_passed is None:
        fields["is_test_passed"] = error_count == 0
    return fields


class SessionLifecycleTracker:
    """Own the UNSTARTED -> ACTIVE -> TERMINATED transitions of one session."""

    def __init__(
        self,
        session_info: SessionInfo,
        store: SessionStore,
        recorder: CommandLogRecorder,
        artifacts: ArtifactStore,
        recording: RecordingController,
        expected_failures: Sequence[str] = EXPECTED_FAILURE_COMMANDS,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._session = session_info
        self._store = store
        self._recorder = recorder
        self._artifacts = artifacts
        self._recording = recording
        self._expected_failures = tuple(expected_failures)
        self._logger = logger or LOGGER
        self._state = SessionState.UNSTARTED

    @property
    def state(self) -> SessionState:
        return self._state

    async def start(self, command: DriverCommand) -> Any:
        """Persist the session, record the start command and begin the screen recording."""

        if self._state is not SessionState.UNSTARTED:
            raise SessionStateError(f"Session {self._session.session_id} was already started")

        session_id = self._session.session_id
        started_at = utcnow()
        await self._store.create_session(
            SessionRecord(
                **self._session.model_dump(exclude={"is_completed"}),
                start_time=started_at,
                is_completed=False,
            )
        )
        self._state = SessionState.ACTIVE
        self._logger.info("Session started %s", session_id)

        self._artifacts.prepare_session(session_id)
        command.start_time = command.start_time or started_at
        command.end_time = command.end_time or utcnow()
        await self._recorder.record(command, None)
        return await self._recording.start(command.driver, session_id)

    async def terminate(self, command: DriverCommand) -> None:
        """Close the session: save the video, count failures and write the verdict in one update."""

        session_id = self._session.session_id
        if self._state is SessionState.TERMINATED:
            self._logger.warning("Session %s already terminated; ignoring repeated termination", session_id)
            return
        if self._state is SessionState.UNSTARTED:
            raise SessionStateError(f"Session {session_id} cannot be terminated before it started")

        video_path = await self._save_recording(command.driver)
        error_count = await self._store.count_command_logs(
            session_id,
            is_error=True,
            exclude_commands=self._expected_failures,
        )
        existing = await self._store.find_session(session_id)

        update: Dict[str, Any] = {
            "is_completed": True,
            "end_time": utcnow(),
            "video_path": video_path,
        }
        update.update(derive_verdict(error_count, existing))
        await self._store.update_session(session_id, update)
        # Only a fully written session row closes the tracker; a failed attempt can be retried.
        self._state = SessionState.TERMINATED
        self._session.is_completed = True
        self._logger.info("Session terminated %s with %d failed command(s)", session_id, error_count)

    async def _save_recording(self, driver: Any) -> Optional[str]:
        session_id = self._session.session_id
        video = await self._recording.stop(driver, session_id)
        if not video:
            self._logger.warning("Video file is empty for session %s", session_id)
            return None
        path = self._artifacts.write_video(session_id, video)
        self._logger.info("Video saved for %s in %s", session_id, path)
        return str(path)


__all__ = ["EXPECTED_FAILURE_COMMANDS", "SessionLifecycleTracker", "SessionState", "derive_verdict"]
