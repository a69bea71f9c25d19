"""Status notices — transient, cancellable user-facing messages.

Notices are presentation state only.  A notice is replaced by the next one
and dismissed by an explicit ``asyncio`` timer handle that can be cancelled;
no workflow ever waits on, or branches on, a notice.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class NoticeLevel(str, Enum):
    PENDING = "pending"
    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


class StatusNotice(BaseModel):
    """A single message shown to the user."""

    model_config = ConfigDict(frozen=True)

    level: NoticeLevel
    message: str
    shown_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class StatusNotifier:
    """Holds the current notice and its scheduled dismissal.

    Parameters
    ----------
    success_seconds:
        Auto-dismiss delay for success notices.
    error_seconds:
        Auto-dismiss delay for error notices.  Pending notices stay until
        replaced or dismissed.
    """

    def __init__(self, success_seconds: float = 2.0, error_seconds: float = 3.0) -> None:
        self._delays = {
            NoticeLevel.INFO: success_seconds,
            NoticeLevel.SUCCESS: success_seconds,
            NoticeLevel.ERROR: error_seconds,
        }
        self._current: StatusNotice | None = None
        self._timer: asyncio.TimerHandle | None = None

    @property
    def current(self) -> StatusNotice | None:
        return self._current

    @property
    def dismissal_scheduled(self) -> bool:
        return self._timer is not None

    def show(self, level: NoticeLevel, message: str) -> StatusNotice:
        """Replace the current notice, scheduling its dismissal when applicable."""
        self.cancel()
        notice = StatusNotice(level=level, message=message)
        self._current = notice
        log = logger.warning if level is NoticeLevel.ERROR else logger.info
        log("[%s] %s", level.value, message)

        delay = self._delays.get(level)
        if delay is not None and delay > 0:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                # No loop (synchronous caller): the notice stays until dismissed.
                return notice
            self._timer = loop.call_later(delay, self._expire, notice)
        return notice

    def pending(self, message: str) -> StatusNotice:
        return self.show(NoticeLevel.PENDING, message)

    def info(self, message: str) -> StatusNotice:
        return self.show(NoticeLevel.INFO, message)

    def success(self, message: str) -> StatusNotice:
        return self.show(NoticeLevel.SUCCESS, message)

    def error(self, message: str) -> StatusNotice:
        return self.show(NoticeLevel.ERROR, message)

    def cancel(self) -> None:
        """Cancel the scheduled dismissal, keeping the current notice."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def dismiss(self) -> None:
        """Remove the current notice now."""
        self.cancel()
        self._current = None

    def _expire(self, notice: StatusNotice) -> None:
        self._timer = None
        if self._current is notice:
            self._current = None
