"""User-facing notifications raised by route planning."""

import logging
from dataclasses import dataclass, field
from typing import List, Literal, Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def success(self, text: str) -> None: ...

    def error(self, text: str) -> None: ...


class LoggingNotifier:
    """Sends notifications to the application log."""

    def success(self, text: str) -> None:
        logger.info(text)

    def error(self, text: str) -> None:
        logger.error(text)


@dataclass
class Notification:
    level: Literal["success", "error"]
    text: str


@dataclass
class CollectingNotifier:
    """Keeps notifications so an HTTP response can hand them to the client."""

    messages: List[Notification] = field(default_factory=list)

    def success(self, text: str) -> None:
        self.messages.append(Notification("success", text))

    def error(self, text: str) -> None:
        self.messages.append(Notification("error", text))
