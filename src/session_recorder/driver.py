"""Interfaces of the driver-side collaborators consumed by the recorder."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Mapping, Optional, Protocol, Sequence


class ScreenshotCapturer(Protocol):
    async def capture(self, driver: Any, session_id: str) -> str:
        """Return the current screen as a base64 encoded JPEG/PNG."""


class RecordingController(Protocol):
    async def start(self, driver: Any, session_id: str) -> Any:
        ...

    async def stop(self, driver: Any, session_id: str) -> str:
        """Stop the recording and return the video as base64, or ``""`` when nothing was captured."""


class LogSource(Protocol):
    def get_logs(self, driver: Any, session_id: str, kind: str) -> Sequence[Mapping[str, Any]]:
        """
        Return the full ordered log snapshot of ``kind`` available right now.

        Entries carry ``timestamp`` (epoch milliseconds), ``level`` and ``message``.
        """


class ProxyInterceptor(Protocol):
    def intercept(self, payload: Any) -> Awaitable[Any]:
        """Start inspecting a proxied request/response and resolve with the captured annotation."""


@dataclass
class DriverServices:
    """The driver-facing collaborators one session needs."""

    screenshots: ScreenshotCapturer
    recording: RecordingController
    logs: LogSource
    proxy: Optional[ProxyInterceptor] = None


__all__ = [
    "DriverServices",
    "LogSource",
    "ProxyInterceptor",
    "RecordingController",
    "ScreenshotCapturer",
]
