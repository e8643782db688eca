from __future__ import annotations

import datetime as dt
from pathlib import Path

import pytest

from session_recorder.artifacts import ArtifactStore
from session_recorder.errors import ArtifactError, SessionStateError
from session_recorder.lifecycle import SessionLifecycleTracker, SessionState, derive_verdict
from session_recorder.models import CommandLogEntry, SessionRecord, SessionStatus
from session_recorder.parsers import default_parser_table
from session_recorder.recorder import CommandLogRecorder

from conftest import VIDEO_BYTES, FakeRecording, make_command


def _tracker(session_info, config, store, screenshots, recording) -> SessionLifecycleTracker:
    artifacts = ArtifactStore(config)
    recorder = CommandLogRecorder(session_info, config, store, default_parser_table(), screenshots, artifacts)
    return SessionLifecycleTracker(session_info, store, recorder, artifacts, recording)


async def _add_log(store, name: str, is_error: bool) -> None:
    await store.create_command_log(CommandLogEntry(session_id="S1", command_name=name, title=name, is_error=is_error))


def test_derive_verdict_only_fills_unset_fields():
    assert derive_verdict(0, None) == {"session_status": SessionStatus.PASSED, "is_test_passed": True}
    assert derive_verdict(2, None) == {"session_status": SessionStatus.FAILED, "is_test_passed": False}

    decided = SessionRecord(
        session_id="S1",
        start_time=dt.datetime(2024, 1, 1),
        session_status=SessionStatus.PASSED,
        is_test_passed=True,
    )
    assert derive_verdict(5, decided) == {}

    partial = SessionRecord(session_id="S1", start_time=dt.datetime(2024, 1, 1), is_test_passed=False)
    assert derive_verdict(0, partial) == {"session_status": SessionStatus.PASSED}


@pytest.mark.asyncio
async def test_start_persists_session_and_start_record(session_info, config, store, screenshots, recording):
    tracker = _tracker(session_info, config, store, screenshots, recording)

    result = await tracker.start(make_command("createSession"))

    assert result == {"recording": True}
    assert recording.started == ["S1"]
    assert tracker.state is SessionState.ACTIVE
    assert (Path(config.screenshot_save_path) / "S1").is_dir()

    session = await store.find_session("S1")
    assert session.is_completed is False
    assert session.start_time is not None
    assert session.end_time is None
    assert session.device_name == "Pixel 7"

    logs = await store.list_command_logs("S1")
    assert [log.command_name for log in logs] == ["createSession"]
    assert logs[0].response["session_id"] == "S1"


@pytest.mark.asyncio
async def test_start_twice_is_rejected(session_info, config, store, screenshots, recording):
    tracker = _tracker(session_info, config, store, screenshots, recording)
    await tracker.start(make_command("createSession"))
    with pytest.raises(SessionStateError):
        await tracker.start(make_command("createSession"))


@pytest.mark.asyncio
async def test_terminate_before_start_is_rejected(session_info, config, store, screenshots, recording):
    tracker = _tracker(session_info, config, store, screenshots, recording)
    with pytest.raises(SessionStateError):
        await tracker.terminate(make_command("deleteSession"))


@pytest.mark.asyncio
async def test_terminate_with_errors_marks_session_failed(session_info, config, store, screenshots, recording):
    tracker = _tracker(session_info, config, store, screenshots, recording)
    await tracker.start(make_command("createSession"))
    await _add_log(store, "click", True)

    await tracker.terminate(make_command("deleteSession"))

    session = await store.find_session("S1")
    assert session.is_completed is True
    assert session.end_time is not None
    assert session.session_status is SessionStatus.FAILED
    assert session.is_test_passed is False
    assert session_info.is_completed is True
    assert tracker.state is SessionState.TERMINATED


@pytest.mark.asyncio
async def test_expected_lookup_failures_do_not_fail_the_session(session_info, config, store, screenshots, recording):
    tracker = _tracker(session_info, config, store, screenshots, recording)
    await tracker.start(make_command("createSession"))
    await _add_log(store, "findElement", True)
    await _add_log(store, "elementDisplayed", True)
    await _add_log(store, "click", False)

    await tracker.terminate(make_command("deleteSession"))

    session = await store.find_session("S1")
    assert session.session_status is SessionStatus.PASSED
    assert session.is_test_passed is True


@pytest.mark.asyncio
async def test_existing_verdict_is_preserved(session_info, config, store, screenshots, recording):
    tracker = _tracker(session_info, config, store, screenshots, recording)
    await tracker.start(make_command("createSession"))
    await store.update_session("S1", {"session_status": SessionStatus.PASSED, "is_test_passed": True})
    await _add_log(store, "click", True)

    await tracker.terminate(make_command("deleteSession"))

    session = await store.find_session("S1")
    assert session.session_status is SessionStatus.PASSED
    assert session.is_test_passed is True
    assert session.is_completed is True


@pytest.mark.asyncio
async def test_repeated_termination_changes_nothing(session_info, config, store, screenshots, recording, caplog):
    tracker = _tracker(session_info, config, store, screenshots, recording)
    await tracker.start(make_command("createSession"))
    await tracker.terminate(make_command("deleteSession"))
    first = await store.find_session("S1")

    await _add_log(store, "click", True)
    await tracker.terminate(make_command("deleteSession"))
    second = await store.find_session("S1")

    assert second == first
    assert recording.stopped == ["S1"]
    assert "already terminated" in caplog.text


@pytest.mark.asyncio
async def test_empty_recording_leaves_video_path_unset(session_info, config, store, screenshots, recording, caplog):
    tracker = _tracker(session_info, config, store, screenshots, recording)
    await tracker.start(make_command("createSession"))

    await tracker.terminate(make_command("deleteSession"))

    session = await store.find_session("S1")
    assert session.video_path is None
    assert session.is_completed is True
    assert "Video file is empty for session S1" in caplog.text


@pytest.mark.asyncio
async def test_recording_is_saved_as_video(session_info, config, store, screenshots):
    recording = FakeRecording(video=VIDEO_BYTES)
    tracker = _tracker(session_info, config, store, screenshots, recording)
    await tracker.start(make_command("createSession"))

    await tracker.terminate(make_command("deleteSession"))

    session = await store.find_session("S1")
    expected = Path(config.video_save_path) / "S1.mp4"
    assert session.video_path == str(expected)
    assert expected.read_bytes() == VIDEO_BYTES


class BrokenOnceRecording(FakeRecording):
    """Returns an undecodable video on the first stop only."""

    async def stop(self, driver, session_id):
        if not self.stopped:
            self.stopped.append(session_id)
            return "%%% not base64 %%%"
        return await super().stop(driver, session_id)


@pytest.mark.asyncio
async def test_failed_termination_can_be_retried(session_info, config, store, screenshots):
    recording = BrokenOnceRecording()
    tracker = _tracker(session_info, config, store, screenshots, recording)
    await tracker.start(make_command("createSession"))

    with pytest.raises(ArtifactError):
        await tracker.terminate(make_command("deleteSession"))

    assert tracker.state is SessionState.ACTIVE
    assert session_info.is_completed is False
    pending = await store.find_session("S1")
    assert pending.is_completed is False
    assert pending.end_time is None

    await tracker.terminate(make_command("deleteSession"))

    assert tracker.state is SessionState.TERMINATED
    assert recording.stopped == ["S1", "S1"]
    session = await store.find_session("S1")
    assert session.is_completed is True
    assert session.end_time is not None
    assert session.video_path is None
    assert session.session_status is SessionStatus.PASSED
    assert session.is_test_passed is True
