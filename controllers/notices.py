"""User-visible notices (toasts).

Controllers post exactly one notice per handled failure or completed action.
Every notice is also logged; listeners (a UI toast layer, the API, tests)
subscribe to receive them as they are posted.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from core.observability.logging import get_logger


logger = get_logger(__name__)


class NoticeLevel(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class Notice:
    """One toast."""
    level: NoticeLevel
    message: str
    source: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)


NoticeListener = Callable[[Notice], None]


class NoticeBoard:
    """Collects notices posted by controllers."""

    def __init__(self):
        self._notices: List[Notice] = []
        self._listeners: List[NoticeListener] = []

    def subscribe(self, listener: NoticeListener) -> Callable[[], None]:
        """Register a listener; returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def post(self, level: NoticeLevel, message: str, source: Optional[str] = None) -> Notice:
        notice = Notice(level=level, message=message, source=source)
        self._notices.append(notice)

        log = logger.error if level == NoticeLevel.ERROR else (
            logger.warning if level == NoticeLevel.WARNING else logger.info
        )
        log(f"Notice: {message}", extra_fields={"level": level.value, "source": source})

        for listener in list(self._listeners):
            listener(notice)
        return notice

    def success(self, message: str, source: Optional[str] = None) -> Notice:
        return self.post(NoticeLevel.SUCCESS, message, source)

    def info(self, message: str, source: Optional[str] = None) -> Notice:
        return self.post(NoticeLevel.INFO, message, source)

    def warning(self, message: str, source: Optional[str] = None) -> Notice:
        return self.post(NoticeLevel.WARNING, message, source)

    def error(self, message: str, source: Optional[str] = None) -> Notice:
        return self.post(NoticeLevel.ERROR, message, source)

    @property
    def notices(self) -> List[Notice]:
        return list(self._notices)

    def of_level(self, level: NoticeLevel) -> List[Notice]:
        return [n for n in self._notices if n.level == level]

    @property
    def last(self) -> Optional[Notice]:
        return self._notices[-1] if self._notices else None

    def clear(self) -> None:
        self._notices.clear()
