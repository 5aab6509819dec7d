"""
Heartbeat scheduler.

Sends a heartbeat marker over every open connection on a fixed period to keep
the channel warm. It never decides a connection is dead; only the transport's
own close/error events do that.
"""

from typing import Optional

from eind.core.logging_config import get_logger
from eind.core.protocol import HEARTBEAT
from eind.core.registry import ConnectionRegistry
from eind.core.scheduling import Clock, TimerHandle

logger = get_logger(__name__)


class HeartbeatScheduler:
    def __init__(self, registry: ConnectionRegistry, clock: Clock, interval: float = 2.0):
        self.registry = registry
        self.clock = clock
        self.interval = interval
        self._timer: Optional[TimerHandle] = None

    @property
    def running(self) -> bool:
        return self._timer is not None

    def start(self) -> None:
        if self._timer is None:
            self._timer = self.clock.call_later(self.interval, self._on_timer)

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def tick(self) -> int:
        """Send one heartbeat to every open connection.

        Returns:
            int: Number of connections probed
        """
        sent = 0
        for remote_id in self.registry.open_ids():
            if self.registry.send(remote_id, dict(HEARTBEAT)):
                sent += 1
        return sent

    def _on_timer(self) -> None:
        if self._timer is None:
            return
        try:
            self.tick()
        finally:
            self._timer = self.clock.call_later(self.interval, self._on_timer)
