"""
Transient user notifications.

Recoverable failures (offline peer, camera denied, network error) end up here
as one short human readable string each; nothing is raised to the caller.
"""

from dataclasses import dataclass
from itertools import count
from typing import Callable, List

from eind.core.logging_config import get_logger
from eind.core.scheduling import Clock

logger = get_logger(__name__)


@dataclass(frozen=True)
class Notification:
    id: int
    text: str
    created_at: float
    expires_at: float


class Notifier:
    def __init__(self, clock: Clock, ttl: float = 3.0):
        self.clock = clock
        self.ttl = ttl
        self._ids = count(1)
        self._items: List[Notification] = []
        self._listeners: List[Callable[[Notification], None]] = []

    def subscribe(self, listener: Callable[[Notification], None]) -> None:
        self._listeners.append(listener)

    def notify(self, text: str) -> Notification:
        now = self.clock.now()
        item = Notification(next(self._ids), text, now, now + self.ttl)
        self._prune(now)
        self._items.append(item)
        logger.info(f"Notification: {text}")
        for listener in self._listeners:
            listener(item)
        return item

    def active(self) -> List[Notification]:
        """Notifications that have not expired yet, oldest first."""
        self._prune(self.clock.now())
        return list(self._items)

    def _prune(self, now: float) -> None:
        self._items = [n for n in self._items if n.expires_at > now]
