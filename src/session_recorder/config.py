"""Application configuration using Pydantic settings."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RecorderConfig(BaseModel):
    """Artifact settings consumed by the recorder and the session lifecycle."""

    model_config = ConfigDict(frozen=True)

    take_screenshots_for: List[str] = Field(default_factory=lambda: ["click", "setValue", "setUrl"])
    screenshot_save_path: Path = Field(default=Path("var/screenshots"))
    video_save_path: Path = Field(default=Path("var/videos"))


class DatabaseConfig(BaseModel):
    """Configuration for the SQLite database holding sessions and command logs."""

    url: str = Field(default="sqlite:///session_recorder.db")
    echo: bool = False


class Settings(BaseSettings):
    """Central application settings."""

    model_config = SettingsConfigDict(
        env_prefix="SESSION_RECORDER_",
        env_nested_delimiter="__",
        env_file=Path(".env"),
        extra="ignore",
    )

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    recorder: RecorderConfig = Field(default_factory=RecorderConfig)
    log_level: str = "INFO"

    def to_dict(self) -> Dict[str, Any]:
        """Return settings as a dictionary."""

        return {
            "database": self.database.model_dump(),
            "recorder": self.recorder.model_dump(mode="json"),
            "log_level": self.log_level,
        }


__all__ = ["Settings", "DatabaseConfig", "RecorderConfig"]
