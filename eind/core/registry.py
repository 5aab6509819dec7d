"""
Connection registry.

Tracks live connections keyed by remote identifier. The registry is the only
code that adds or removes Connection entries; everyone else asks it by
identifier.

Invariant: at most one Connection per remote identifier. A second connection
that opens while the registered one is still open is closed and ignored; a
registered connection that is no longer open is replaced.
"""

from typing import Any, Callable, Dict, List, Optional

from eind.core.logging_config import get_logger
from eind.core.notifications import Notifier
from eind.core.protocol import is_heartbeat
from eind.core.scheduling import Clock
from eind.core.transport import ConnectionHandle, TransportError, TransportProvider
from eind.models.peer import Connection

logger = get_logger(__name__)


class ConnectionRegistry:
    """Owns every Connection of this endpoint"""

    def __init__(
        self,
        transport: TransportProvider,
        clock: Clock,
        notifier: Optional[Notifier] = None,
        local_id: Optional[str] = None,
    ):
        """Initialize the registry

        Args:
            transport: Provider used to open outbound connections
            clock: Source of last-activity timestamps
            notifier: Receives user-facing failure notifications
            local_id: This endpoint's identifier; connecting to it is refused
        """
        self.transport = transport
        self.clock = clock
        self.notifier = notifier
        self.local_id = local_id
        self._entries: Dict[str, Connection] = {}

        self.on_established: Optional[Callable[[str], None]] = None
        self.on_lost: Optional[Callable[[str], None]] = None
        self.on_payload: Optional[Callable[[str, Any], None]] = None

    # -- explicit registry operations --

    def lookup(self, remote_id: str) -> Optional[Connection]:
        return self._entries.get(remote_id)

    def register(self, handle: ConnectionHandle) -> Connection:
        conn = Connection(
            remote_id=handle.remote_id,
            handle=handle,
            is_open=True,
            last_activity=self.clock.now(),
        )
        self._entries[handle.remote_id] = conn
        return conn

    def deregister(
        self, remote_id: str, handle: Optional[ConnectionHandle] = None
    ) -> Optional[Connection]:
        """Remove the entry for remote_id.

        When handle is given, the entry is only removed if it belongs to that
        handle, so late events from a replaced connection are harmless.
        """
        conn = self._entries.get(remote_id)
        if conn is None:
            return None
        if handle is not None and conn.handle is not handle:
            return None
        conn.is_open = False
        del self._entries[remote_id]
        return conn

    def is_open(self, remote_id: str) -> bool:
        conn = self._entries.get(remote_id)
        return bool(conn and conn.is_open and conn.handle.is_open)

    def open_ids(self) -> List[str]:
        return [rid for rid in list(self._entries) if self.is_open(rid)]

    # -- user operations --

    def connect(self, remote_id: str) -> None:
        """Request an outbound connection; the result arrives as events."""
        remote_id = (remote_id or "").strip()
        if not remote_id:
            self._notify("Invalid ID")
            return
        if remote_id == self.local_id:
            self._notify("Cannot connect to yourself")
            return
        if self.is_open(remote_id):
            logger.debug(f"Already connected to {remote_id}")
            return

        try:
            self.transport.connect(remote_id, reliable=True, serialization="json")
        except TransportError as e:
            logger.warning(f"Connect to {remote_id} failed: {e}")
            self._notify(f"Connection failed: {e}")

    def send(self, remote_id: str, payload: Any) -> bool:
        """Best-effort send.

        Returns:
            bool: False if there is no open connection to remote_id
        """
        if not self.is_open(remote_id):
            return False
        conn = self._entries[remote_id]
        try:
            conn.handle.send(payload)
        except TransportError as e:
            logger.warning(f"Send to {remote_id} failed: {e}")
            return False
        return True

    def close_all(self) -> None:
        for conn in list(self._entries.values()):
            try:
                conn.handle.close()
            except TransportError as e:
                logger.warning(f"Closing {conn.remote_id} failed: {e}")
        self._entries.clear()

    # -- transport events --

    def handle_incoming(self, handle: ConnectionHandle) -> None:
        logger.info(f"Incoming connection from {handle.remote_id}")

    def handle_open(self, handle: ConnectionHandle) -> None:
        remote_id = handle.remote_id
        existing = self._entries.get(remote_id)

        if existing is not None and existing.handle is handle:
            existing.is_open = True
            return

        if existing is not None and existing.is_open and existing.handle.is_open:
            logger.info(f"Duplicate connection to {remote_id}, keeping the existing one")
            try:
                handle.close()
            except TransportError as e:
                logger.warning(f"Closing duplicate connection failed: {e}")
            return

        self.register(handle)
        logger.info(f"Connection established with {remote_id}")
        if self.on_established:
            self.on_established(remote_id)

    def handle_data(self, handle: ConnectionHandle, payload: Any) -> None:
        conn = self._entries.get(handle.remote_id)
        if conn is None or conn.handle is not handle:
            logger.debug(f"Dropping data from unregistered connection {handle.remote_id}")
            return

        conn.last_activity = self.clock.now()
        if is_heartbeat(payload):
            return
        if self.on_payload:
            self.on_payload(handle.remote_id, payload)

    def handle_close(self, handle: ConnectionHandle) -> None:
        if self.deregister(handle.remote_id, handle) is None:
            return
        logger.info(f"Connection to {handle.remote_id} closed")
        if self.on_lost:
            self.on_lost(handle.remote_id)

    def handle_error(self, handle: ConnectionHandle, reason: str) -> None:
        logger.warning(f"Connection to {handle.remote_id} failed: {reason}")
        self._notify(f"Connection error: {handle.remote_id}")
        if self.deregister(handle.remote_id, handle) is not None and self.on_lost:
            self.on_lost(handle.remote_id)

    def _notify(self, text: str) -> None:
        if self.notifier:
            self.notifier.notify(text)
