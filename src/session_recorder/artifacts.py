from __future__ import annotations

import base64
import binascii
import logging
import os
import uuid
from pathlib import Path
from typing import Optional

from .config import RecorderConfig
from .errors import ArtifactError


LOGGER = logging.getLogger("session_recorder.artifacts")


class ArtifactStore:
    """Write screenshots and recordings for a session under the configured folders."""

    def __init__(self, config: RecorderConfig, logger: Optional[logging.Logger] = None) -> None:
        self._screenshot_root = Path(config.screenshot_save_path)
        self._video_root = Path(config.video_save_path)
        self._logger = logger or LOGGER

    def session_folder(self, session_id: str) -> Path:
        return self._screenshot_root / session_id

    def prepare_session(self, session_id: str) -> Path:
        """Create the per-session screenshot folder (and the video folder) if missing."""
        folder = self.session_folder(session_id)
        try:
            folder.mkdir(parents=True, exist_ok=True)
            self._video_root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ArtifactError(f"Unable to prepare artifact folders for {session_id}: {exc}") from exc
        return folder

    def write_screenshot(self, session_id: str, image_base64: str) -> Path:
        path = self.session_folder(session_id) / f"{uuid.uuid4().hex}.jpg"
        self._write_once(path, image_base64)
        self._logger.debug("Screenshot written to %s", path)
        return path

    def write_video(self, session_id: str, video_base64: str) -> Path:
        path = self._video_root / f"{session_id}.mp4"
        self._write_once(path, video_base64)
        return path

    def _write_once(self, path: Path, payload_base64: str) -> None:
        try:
            data = base64.b64decode(payload_base64, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ArtifactError(f"Artifact payload for {path.name} is not valid base64") from exc

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("xb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
        except OSError as exc:
            raise ArtifactError(f"Unable to write artifact {path}: {exc}") from exc


__all__ = ["ArtifactStore"]
