"""
In-process loopback transport.

Implements the transport boundary for endpoints living in the same process:
every LoopbackTransport registers on a shared LoopbackNetwork and delivers
events straight into the peer's EventQueue. Payloads are round-tripped
through JSON like a serialization="json" data channel would.

The API serves its session over this provider by default; other endpoints
in the same process reach it by joining the same network. The test suite
pairs endpoints on it as well.
"""

import asyncio
import json
from typing import Dict, List, Optional

from eind.core import events as ev
from eind.core.events import EventQueue
from eind.core.transport import (
    CallHandle,
    ConnectionHandle,
    MediaAccessError,
    MediaDevices,
    MediaStream,
    TransportError,
    TransportProvider,
)


class LoopbackNetwork:
    """Signaling directory shared by loopback transports"""

    def __init__(self):
        self._peers: Dict[str, "LoopbackTransport"] = {}

    def register(self, peer_id: str, transport: "LoopbackTransport") -> bool:
        current = self._peers.get(peer_id)
        if current is not None and current is not transport:
            return False
        self._peers[peer_id] = transport
        return True

    def unregister(self, peer_id: str) -> None:
        self._peers.pop(peer_id, None)

    def lookup(self, peer_id: str) -> Optional["LoopbackTransport"]:
        return self._peers.get(peer_id)


class LoopbackTrack:
    def __init__(self, kind: str):
        self.kind = kind
        self.stopped = False
        self.stop_count = 0

    def stop(self) -> None:
        self.stop_count += 1
        self.stopped = True


class LoopbackMediaStream(MediaStream):
    def __init__(self, kinds: List[str]):
        self._tracks = [LoopbackTrack(k) for k in kinds]

    @property
    def tracks(self) -> List[LoopbackTrack]:
        return list(self._tracks)

    def stop(self) -> None:
        for track in self._tracks:
            track.stop()


class LoopbackMediaDevices(MediaDevices):
    """Fake camera/microphone

    Args:
        error: When set, every acquire() fails with this reason
    """

    def __init__(self, error: Optional[str] = None):
        self.error = error
        self.acquired: List[LoopbackMediaStream] = []

    async def acquire(self, video: bool = True, audio: bool = True) -> LoopbackMediaStream:
        await asyncio.sleep(0)
        if self.error:
            raise MediaAccessError(self.error)
        kinds = [k for k, wanted in (("audio", audio), ("video", video)) if wanted]
        stream = LoopbackMediaStream(kinds)
        self.acquired.append(stream)
        return stream


class LoopbackConnection(ConnectionHandle):
    def __init__(self, owner: "LoopbackTransport", remote_id: str):
        self.owner = owner
        self.remote_id = remote_id
        self.peer: Optional["LoopbackConnection"] = None
        self._open = False
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self._open

    def send(self, payload: dict) -> None:
        if not self._open or self.peer is None:
            raise TransportError("Connection is not open")
        data = json.loads(json.dumps(payload))
        self.peer.owner.post(ev.DataReceived(self.peer, data))

    def close(self) -> None:
        for side in (self, self.peer):
            if side is not None and not side._closed:
                side._closed = True
                side._open = False
                side.owner.post(ev.ConnectionClosed(side))


class LoopbackCall(CallHandle):
    def __init__(self, owner: "LoopbackTransport", remote_id: str):
        self.owner = owner
        self.remote_id = remote_id
        self.peer: Optional["LoopbackCall"] = None
        self.local_stream: Optional[MediaStream] = None
        self.closed = False

    def answer(self, stream: MediaStream) -> None:
        if self.closed or self.peer is None or self.peer.closed:
            raise TransportError("Call is no longer available")
        self.local_stream = stream
        self.owner.post(ev.CallStreamArrived(self, self.peer.local_stream))
        self.peer.owner.post(ev.CallStreamArrived(self.peer, stream))

    def close(self) -> None:
        for side in (self, self.peer):
            if side is not None and not side.closed:
                side.closed = True
                side.owner.post(ev.CallClosed(side))


class LoopbackTransport(TransportProvider):
    def __init__(self, network: LoopbackNetwork):
        self.network = network
        self.local_id: Optional[str] = None
        self.events: Optional[EventQueue] = None
        self.ice_servers: List[str] = []
        self.connections: List[LoopbackConnection] = []
        self.calls: List[LoopbackCall] = []

    def post(self, event: ev.Event) -> None:
        if self.events is not None:
            self.events.post(event)

    def open(self, local_id: str, ice_servers: List[str], events: EventQueue) -> None:
        self.local_id = local_id
        self.ice_servers = list(ice_servers)
        self.events = events
        if self.network.register(local_id, self):
            self.post(ev.PeerOpened(local_id))
        else:
            self.post(ev.PeerFailed(f"ID {local_id} is taken"))

    def connect(
        self, remote_id: str, reliable: bool = True, serialization: str = "json"
    ) -> LoopbackConnection:
        if self.events is None:
            raise TransportError("Transport is not open")
        local = LoopbackConnection(self, remote_id)
        self.connections.append(local)

        remote_transport = self.network.lookup(remote_id)
        if remote_transport is None:
            self.post(ev.ConnectionFailed(local, f"Could not connect to peer {remote_id}"))
            return local

        remote = LoopbackConnection(remote_transport, self.local_id)
        remote_transport.connections.append(remote)
        local.peer, remote.peer = remote, local
        local._open = remote._open = True

        remote_transport.post(ev.IncomingConnection(remote))
        remote_transport.post(ev.ConnectionOpened(remote))
        self.post(ev.ConnectionOpened(local))
        return local

    def call(self, remote_id: str, stream: MediaStream) -> LoopbackCall:
        if self.events is None:
            raise TransportError("Transport is not open")
        local = LoopbackCall(self, remote_id)
        local.local_stream = stream
        self.calls.append(local)

        remote_transport = self.network.lookup(remote_id)
        if remote_transport is None:
            self.post(ev.CallFailed(local, f"Could not call peer {remote_id}"))
            return local

        remote = LoopbackCall(remote_transport, self.local_id)
        remote_transport.calls.append(remote)
        local.peer, remote.peer = remote, local
        remote_transport.post(ev.IncomingCall(remote))
        return local

    def drop_signaling(self) -> None:
        """Simulate losing the signaling server."""
        if self.local_id is not None:
            self.network.unregister(self.local_id)
        self.post(ev.PeerDisconnected())

    def reconnect(self) -> None:
        if self.local_id is None:
            raise TransportError("Transport was never opened")
        if not self.network.register(self.local_id, self):
            raise TransportError(f"ID {self.local_id} is taken")
        self.post(ev.PeerOpened(self.local_id))

    def destroy(self) -> None:
        for conn in self.connections:
            conn.close()
        for call in self.calls:
            call.close()
        if self.local_id is not None and self.network.lookup(self.local_id) is self:
            self.network.unregister(self.local_id)
