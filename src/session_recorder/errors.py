"""Exception hierarchy raised by the session recorder."""

from __future__ import annotations

from typing import Any, Optional


class RecorderError(Exception):
    """Base class for errors raised by the recorder itself."""


class PersistenceError(RecorderError):
    """A write or read against the session store failed."""


class ArtifactError(RecorderError):
    """A screenshot or video artifact could not be decoded or written."""


class RegistrationError(RecorderError):
    """A parser or dashboard script was registered twice or with an invalid handler."""


class UnknownDashboardScript(RecorderError, KeyError):
    """Dispatch was attempted for a dashboard script that is not registered."""

    def __init__(self, script_name: str) -> None:
        super().__init__(script_name)
        self.script_name = script_name

    def __str__(self) -> str:
        return f"No dashboard script registered under {self.script_name!r}"


class SessionStateError(RecorderError):
    """A lifecycle transition was requested from a state that does not allow it."""


class DriverCommandError(Exception):
    """
    Failure reported by a driver while executing a command.

    ``error`` carries the protocol error code (``"no such element"``, ...) and
    ``message`` the human readable description, mirroring WebDriver error
    responses.
    """

    def __init__(self, error: str, message: str = "", data: Optional[Any] = None) -> None:
        super().__init__(message or error)
        self.error = error
        self.message = message or error
        self.data = data


__all__ = [
    "ArtifactError",
    "DriverCommandError",
    "PersistenceError",
    "RecorderError",
    "RegistrationError",
    "SessionStateError",
    "UnknownDashboardScript",
]
