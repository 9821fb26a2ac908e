"""
Notification surface for mutation feedback (the dashboard's toasts).
"""
from dataclasses import dataclass
from typing import List, Protocol
import logging

logger = logging.getLogger(__name__)

SUCCESS = "success"
ERROR = "error"


@dataclass(frozen=True)
class Notification:
    level: str
    message: str


class Notifier(Protocol):
    def success(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...


class LoggingNotifier:
    """Server-side sink: notifications go to the application log."""

    def success(self, message: str) -> None:
        logger.info(f"[notify] {message}")

    def error(self, message: str) -> None:
        logger.warning(f"[notify] {message}")


class NotificationLog:
    """Collects notifications in order of arrival."""

    def __init__(self):
        self.notifications: List[Notification] = []

    def success(self, message: str) -> None:
        self.notifications.append(Notification(SUCCESS, message))

    def error(self, message: str) -> None:
        self.notifications.append(Notification(ERROR, message))

    @property
    def successes(self) -> List[str]:
        return [n.message for n in self.notifications if n.level == SUCCESS]

    @property
    def errors(self) -> List[str]:
        return [n.message for n in self.notifications if n.level == ERROR]

    def clear(self) -> None:
        self.notifications.clear()
