"""
Transport provider boundary.

The provider does NAT traversal, ICE negotiation and raw data/media
transport; none of that lives in this package. Implementations report
everything that happens on the network by posting events (see
eind.core.events) to the queue handed to open().
"""

from abc import ABC, abstractmethod
from typing import Any, List

from eind.core.events import EventQueue


class TransportError(Exception):
    """Raised when the network or signaling layer fails"""

    pass


class MediaAccessError(Exception):
    """Raised when camera or microphone cannot be acquired"""

    pass


class MediaStream(ABC):
    """Local or remote audio/video stream"""

    @property
    @abstractmethod
    def tracks(self) -> List[Any]: ...

    @abstractmethod
    def stop(self) -> None:
        """Stop every track of the stream."""


class ConnectionHandle(ABC):
    """Data channel to one remote endpoint.

    Posts ConnectionOpened, DataReceived, ConnectionClosed and
    ConnectionFailed for itself.
    """

    remote_id: str

    @property
    @abstractmethod
    def is_open(self) -> bool: ...

    @abstractmethod
    def send(self, payload: dict) -> None: ...

    @abstractmethod
    def close(self) -> None: ...


class CallHandle(ABC):
    """Media call with one remote endpoint.

    Posts CallStreamArrived, CallClosed and CallFailed for itself.
    """

    remote_id: str

    @abstractmethod
    def answer(self, stream: MediaStream) -> None: ...

    @abstractmethod
    def close(self) -> None: ...


class TransportProvider(ABC):
    @abstractmethod
    def open(self, local_id: str, ice_servers: List[str], events: EventQueue) -> None:
        """Register local_id with signaling; posts PeerOpened or PeerFailed."""

    @abstractmethod
    def connect(
        self, remote_id: str, reliable: bool = True, serialization: str = "json"
    ) -> ConnectionHandle: ...

    @abstractmethod
    def call(self, remote_id: str, stream: MediaStream) -> CallHandle: ...

    @abstractmethod
    def reconnect(self) -> None: ...

    @abstractmethod
    def destroy(self) -> None: ...


class MediaDevices(ABC):
    @abstractmethod
    async def acquire(self, video: bool = True, audio: bool = True) -> MediaStream:
        """Acquire local media.

        Raises:
            MediaAccessError: If permission is denied or no device is usable
        """
