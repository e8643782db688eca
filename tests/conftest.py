from __future__ import annotations

import asyncio
import base64
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from session_recorder.commands import DriverCommand
from session_recorder.config import RecorderConfig
from session_recorder.driver import DriverServices
from session_recorder.interceptor import CommandInterceptor
from session_recorder.models import SessionInfo
from session_recorder.parsers import default_parser_table
from session_recorder.store import SessionStore

SCREENSHOT_BYTES = b"\xff\xd8\xff\xe0fake-jpeg"
VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42"


class FakeScreenshots:
    def __init__(self, payload: bytes = SCREENSHOT_BYTES) -> None:
        self.payload = payload
        self.calls: List[str] = []

    async def capture(self, driver: Any, session_id: str) -> str:
        self.calls.append(session_id)
        return base64.b64encode(self.payload).decode("ascii")


class FakeRecording:
    def __init__(self, video: bytes = b"") -> None:
        self.video = video
        self.started: List[str] = []
        self.stopped: List[str] = []

    async def start(self, driver: Any, session_id: str) -> Dict[str, Any]:
        self.started.append(session_id)
        return {"recording": True}

    async def stop(self, driver: Any, session_id: str) -> str:
        self.stopped.append(session_id)
        return base64.b64encode(self.video).decode("ascii") if self.video else ""


class FakeLogSource:
    def __init__(self) -> None:
        self.lines: List[Dict[str, Any]] = []

    def emit(self, message: str, level: str = "info") -> None:
        self.lines.append({"timestamp": 1700000000000 + len(self.lines), "level": level, "message": message})

    def get_logs(self, driver: Any, session_id: str, kind: str) -> List[Dict[str, Any]]:
        return list(self.lines)


class FakeProxy:
    def __init__(self, delay: float = 0.05) -> None:
        self.delay = delay
        self.payloads: List[Any] = []
        self.finished = False

    async def intercept(self, payload: Any) -> Dict[str, Any]:
        self.payloads.append(payload)
        await asyncio.sleep(self.delay)
        self.finished = True
        return {"intercepted": payload}


def make_command(
    name: str,
    args: Optional[List[Any]] = None,
    result: Any = None,
    error: Optional[BaseException] = None,
) -> DriverCommand:
    calls: List[str] = []

    async def _next() -> Any:
        calls.append(name)
        if error is not None:
            raise error
        return result

    command = DriverCommand(name=name, args=list(args or []), next=_next, driver=object())
    command.calls = calls  # type: ignore[attr-defined]
    return command


@pytest.fixture()
def store(tmp_path: Path) -> SessionStore:
    return SessionStore.from_url(f"sqlite:///{tmp_path / 'sessions.db'}")


@pytest.fixture()
def config(tmp_path: Path) -> RecorderConfig:
    return RecorderConfig(
        take_screenshots_for=["click"],
        screenshot_save_path=tmp_path / "screenshots",
        video_save_path=tmp_path / "videos",
    )


@pytest.fixture()
def session_info() -> SessionInfo:
    return SessionInfo.from_capabilities(
        "S1",
        {"platformName": "Android", "appium:deviceName": "Pixel 7", "appium:automationName": "UiAutomator2"},
    )


@pytest.fixture()
def screenshots() -> FakeScreenshots:
    return FakeScreenshots()


@pytest.fixture()
def recording() -> FakeRecording:
    return FakeRecording()


@pytest.fixture()
def log_source() -> FakeLogSource:
    return FakeLogSource()


@pytest.fixture()
def proxy() -> FakeProxy:
    return FakeProxy()


@pytest.fixture()
def interceptor(session_info, config, store, screenshots, recording, log_source, proxy) -> CommandInterceptor:
    services = DriverServices(screenshots=screenshots, recording=recording, logs=log_source, proxy=proxy)
    return CommandInterceptor.create(session_info, config, store, default_parser_table(), services)
