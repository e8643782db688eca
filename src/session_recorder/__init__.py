"""
Session recorder - command interception and lifecycle tracking for remote
automation sessions.

The package wraps every driver command of a session, persists structured
command logs, device logs, screenshots and recordings, and derives the
session verdict when the session ends.
"""

from importlib.metadata import PackageNotFoundError, version

from .config import RecorderConfig, Settings
from .interceptor import CommandInterceptor, CommandKind, DriverCommand

try:
    __version__ = version("session-recorder")
except PackageNotFoundError:  # pragma: no cover - fallback for editable installs
    __version__ = "0.0.0"

__all__ = [
    "CommandInterceptor",
    "CommandKind",
    "DriverCommand",
    "RecorderConfig",
    "Settings",
    "__version__",
]
