"""Shared data models for sessions, command logs and device log lines."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class SessionStatus(str, Enum):
    """Verdict recorded for a finished session."""

    PASSED = "PASSED"
    FAILED = "FAILED"


class LogType(str, Enum):
    """Origin tag stored with each persisted log line."""

    DEVICE = "DEVICE"
    DEBUG = "DEBUG"


class SessionInfo(BaseModel):
    """Descriptor of the automation session, built from the negotiated capabilities."""

    session_id: str
    name: Optional[str] = None
    build_name: Optional[str] = None
    platform_name: Optional[str] = None
    automation_name: Optional[str] = None
    device_name: Optional[str] = None
    udid: Optional[str] = None
    browser_name: Optional[str] = None
    app: Optional[str] = None
    capabilities: Dict[str, Any] = Field(default_factory=dict)
    is_completed: bool = False

    @classmethod
    def from_capabilities(cls, session_id: str, capabilities: Dict[str, Any]) -> "SessionInfo":
        """Build a descriptor from W3C capabilities, accepting ``appium:`` prefixed keys."""

        def cap(key: str) -> Optional[str]:
            value = capabilities.get(key, capabilities.get(f"appium:{key}"))
            return str(value) if value is not None else None

        return cls(
            session_id=session_id,
            name=cap("name"),
            build_name=cap("build"),
            platform_name=cap("platformName"),
            automation_name=cap("automationName"),
            device_name=cap("deviceName"),
            udid=cap("udid"),
            browser_name=cap("browserName"),
            app=cap("app"),
            capabilities=dict(capabilities),
        )


class SessionRecord(BaseModel):
    """Persisted view of a session row."""

    model_config = ConfigDict(from_attributes=True)

    session_id: str
    name: Optional[str] = None
    build_name: Optional[str] = None
    platform_name: Optional[str] = None
    automation_name: Optional[str] = None
    device_name: Optional[str] = None
    udid: Optional[str] = None
    browser_name: Optional[str] = None
    app: Optional[str] = None
    capabilities: Dict[str, Any] = Field(default_factory=dict)
    start_time: datetime
    end_time: Optional[datetime] = None
    is_completed: bool = False
    session_status: Optional[SessionStatus] = None
    status_message: Optional[str] = None
    is_test_passed: Optional[bool] = None
    video_path: Optional[str] = None


class ParsedLog(BaseModel):
    """
    Structured payload produced by a command parser.

    Parsers may attach additional keys; they are kept and persisted in the
    record's ``extra`` column.
    """

    model_config = ConfigDict(extra="allow")

    title: str
    title_info: Optional[str] = None
    params: Any = None
    response: Any = None


class CommandLogEntry(BaseModel):
    """A command record ready to be written to the store."""

    session_id: str
    command_name: str
    title: str
    title_info: Optional[str] = None
    params: Any = None
    response: Any = None
    extra: Dict[str, Any] = Field(default_factory=dict)
    is_error: bool = False
    screen_shot: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


class CommandLogRecord(CommandLogEntry):
    """Persisted view of a command record."""

    model_config = ConfigDict(from_attributes=True)

    id: int


class LogLineEntry(BaseModel):
    """A device/server log line ready to be written to the store."""

    model_config = ConfigDict(from_attributes=True)

    session_id: str
    timestamp: datetime
    log_type: LogType = LogType.DEVICE
    level: Optional[str] = None
    message: str = ""


__all__ = [
    "CommandLogEntry",
    "CommandLogRecord",
    "LogLineEntry",
    "LogType",
    "ParsedLog",
    "SessionInfo",
    "SessionRecord",
    "SessionStatus",
]
