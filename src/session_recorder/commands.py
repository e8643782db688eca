from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional

CREATE_SESSION = "createSession"
DELETE_SESSION = "deleteSession"
EXECUTE = "execute"


class CommandKind(str, Enum):
    """How the interceptor treats an incoming command."""

    SESSION_START = "session-start"
    SESSION_END = "session-end"
    DASHBOARD = "dashboard-invocation"
    PROXY = "proxy-annotated"
    ORDINARY = "ordinary"


@dataclass
class DriverCommand:
    """A command on its way to the driver, with the continuation that executes it."""

    name: str
    args: List[Any]
    next: Callable[[], Awaitable[Any]]
    driver: Any = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    kind: Optional[CommandKind] = field(default=None, compare=False)


__all__ = ["CREATE_SESSION", "CommandKind", "DELETE_SESSION", "DriverCommand", "EXECUTE"]
