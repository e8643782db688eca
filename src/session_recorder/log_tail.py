from __future__ import annotations

from typing import Generic, Iterable, List, Optional, TypeVar

T = TypeVar("T")


class LogTailTracker(Generic[T]):
    """
    Hand out only the log lines appended since the previous poll.

    The source is expected to return its full history on every call and to
    only ever grow. Any iterable snapshot is accepted. A shorter, missing
    or non-iterable snapshot is treated as "nothing new" and leaves the
    cursor where it is.
    """

    def __init__(self) -> None:
        self._offset = 0

    @property
    def offset(self) -> int:
        return self._offset

    def capture(self, current_full_log: Optional[Iterable[T]]) -> List[T]:
        if current_full_log is None:
            return []
        try:
            snapshot = list(current_full_log)
        except TypeError:
            return []
        if len(snapshot) <= self._offset:
            return []
        new_lines = snapshot[self._offset:]
        self._offset = len(snapshot)
        return new_lines

    def rewind(self, count: int) -> None:
        """Give back the last ``count`` captured lines so the next poll returns them again."""
        self._offset = max(0, self._offset - max(0, count))


__all__ = ["LogTailTracker"]
