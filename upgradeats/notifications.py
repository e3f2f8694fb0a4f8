import time
from dataclasses import dataclass
from typing import Callable, Optional

SUCCESS = "success"
ERROR = "error"

TOAST_SECONDS = 3.0


@dataclass(frozen=True)
class Notification:
    message: str
    kind: str
    expires_at: float


class Notifier:
    """Single-slot toast: a new notification replaces the current one."""

    def __init__(self, duration: float = TOAST_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.duration = duration
        self.clock = clock
        self._current: Optional[Notification] = None

    def show(self, message: str, kind: str = SUCCESS) -> Notification:
        self._current = Notification(message, kind, self.clock() + self.duration)
        return self._current

    def success(self, message: str) -> Notification:
        return self.show(message, SUCCESS)

    def error(self, message: str) -> Notification:
        return self.show(message, ERROR)

    def current(self) -> Optional[Notification]:
        if self._current is not None and self.clock() >= self._current.expires_at:
            self._current = None
        return self._current

    def dismiss(self):
        self._current = None
