"""
Peer session

Wires identity, transport, registry, heartbeat, router, conversation store and
call manager together for one running endpoint, routes queued transport
events to the component that owns them, and exposes the user commands the
presentation layer issues:

    connect_to, send_message, select_conversation,
    start_call, answer_call, reject_call, cancel_call, end_call
"""

import asyncio
import random
from typing import Optional

from eind.core import events as ev
from eind.core.calls import CallSessionManager
from eind.core.config import AppConfig, load_config
from eind.core.conversations import ConversationStore
from eind.core.heartbeat import HeartbeatScheduler
from eind.core.identity import generate_peer_id
from eind.core.logging_config import get_logger
from eind.core.notifications import Notifier
from eind.core.registry import ConnectionRegistry
from eind.core.router import MessageRouter
from eind.core.scheduling import AsyncioClock, Clock
from eind.core.transport import MediaDevices, TransportError, TransportProvider
from eind.models.chat import Conversation, MessageKind
from eind.models.peer import CallKind

logger = get_logger(__name__)

STATUS_INITIALIZING = "Initializing..."
STATUS_ONLINE = "Online"
STATUS_ERROR = "Error"
STATUS_RECONNECTING = "Reconnecting..."


class PeerSession:
    """One running endpoint"""

    def __init__(
        self,
        transport: TransportProvider,
        media: MediaDevices,
        config: Optional[AppConfig] = None,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
        local_id: Optional[str] = None,
    ):
        """Initialize the session

        Args:
            transport: Network/signaling provider
            media: Local camera and microphone access
            config: Tunables, loaded from disk if None
            clock: Time source and timers, wall clock on the asyncio loop if None
            rng: Random source for the local id and assistant replies
            local_id: Fixed local identifier instead of a generated one
        """
        self.config = config or load_config()
        self.clock = clock or AsyncioClock()
        self.rng = rng or random.Random()
        self.local_id = local_id or generate_peer_id(self.config.peer_id_prefix, self.rng)
        self.status = STATUS_INITIALIZING
        self.transport = transport

        self.events = ev.EventQueue()
        self.notifier = Notifier(self.clock, ttl=self.config.notification_ttl)
        self.registry = ConnectionRegistry(
            transport, self.clock, self.notifier, local_id=self.local_id
        )
        self.heartbeat = HeartbeatScheduler(
            self.registry, self.clock, interval=self.config.heartbeat_interval
        )
        self.store = ConversationStore(self.clock)
        self.router = MessageRouter(
            self.store,
            self.registry,
            self.clock,
            self.notifier,
            rng=self.rng,
            bot_reply_delay=self.config.bot_reply_delay,
            max_attachment_bytes=self.config.max_attachment_bytes,
        )
        self.calls = CallSessionManager(transport, media, self.registry, self.notifier)

        self.registry.on_established = self._on_established
        self.registry.on_lost = self._on_lost
        self.registry.on_payload = self.router.route_inbound
        self._subscribe()

    def _subscribe(self) -> None:
        sub = self.events.subscribe
        sub(ev.PeerOpened, self._on_peer_opened)
        sub(ev.PeerFailed, self._on_peer_failed)
        sub(ev.PeerDisconnected, self._on_peer_disconnected)
        sub(ev.IncomingConnection, lambda e: self.registry.handle_incoming(e.handle))
        sub(ev.ConnectionOpened, lambda e: self.registry.handle_open(e.handle))
        sub(ev.DataReceived, lambda e: self.registry.handle_data(e.handle, e.payload))
        sub(ev.ConnectionClosed, lambda e: self.registry.handle_close(e.handle))
        sub(ev.ConnectionFailed, lambda e: self.registry.handle_error(e.handle, e.reason))
        sub(ev.IncomingCall, lambda e: self.calls.handle_incoming(e.call))
        sub(ev.CallStreamArrived, lambda e: self.calls.handle_stream(e.call, e.stream))
        sub(ev.CallClosed, lambda e: self.calls.handle_close(e.call))
        sub(ev.CallFailed, lambda e: self.calls.handle_error(e.call, e.reason))

    # -- lifecycle --

    def start(self) -> None:
        try:
            self.events.bind_loop(asyncio.get_running_loop())
        except RuntimeError:
            pass
        logger.info(f"Starting session {self.local_id}")
        try:
            self.transport.open(self.local_id, self.config.ice_servers, self.events)
        except TransportError as e:
            self.status = STATUS_ERROR
            logger.error(f"Transport open failed: {e}")
            self.notifier.notify("Network Error")
            return
        self.heartbeat.start()

    def shutdown(self) -> None:
        self.heartbeat.stop()
        self.calls.end_call()
        self.registry.close_all()
        self.transport.destroy()
        logger.info(f"Session {self.local_id} shut down")

    def pump(self) -> int:
        """Process every queued transport event now."""
        return self.events.drain()

    # -- user commands --

    def connect_to(self, remote_id: str) -> None:
        self.registry.connect(remote_id)

    def send_message(
        self,
        conversation_id: str,
        kind: MessageKind = MessageKind.TEXT,
        content: str = "",
        file_name: Optional[str] = None,
    ) -> dict:
        return self.router.send_local_message(conversation_id, kind, content, file_name)

    def select_conversation(self, conversation_id: Optional[str]) -> Optional[Conversation]:
        return self.store.select(conversation_id)

    async def start_call(self, conversation_id: str, kind: CallKind = CallKind.VIDEO) -> bool:
        conv = self.store.get(conversation_id)
        if conv is None or not conv.is_p2p:
            self.notifier.notify("Calls are only available in P2P chats")
            return False
        return await self.calls.start_call(conv.id, kind)

    async def answer_call(self) -> bool:
        return await self.calls.answer_call()

    def reject_call(self) -> bool:
        return self.calls.reject_call()

    def cancel_call(self) -> bool:
        return self.calls.cancel_call()

    def end_call(self) -> bool:
        return self.calls.end_call()

    # -- session events --

    def _on_peer_opened(self, event: ev.PeerOpened) -> None:
        self.local_id = event.peer_id
        self.registry.local_id = event.peer_id
        self.status = STATUS_ONLINE
        logger.info(f"Online as {event.peer_id}")

    def _on_peer_failed(self, event: ev.PeerFailed) -> None:
        self.status = STATUS_ERROR
        logger.error(f"Transport error: {event.reason}")
        self.notifier.notify("Network Error")

    def _on_peer_disconnected(self, event: ev.PeerDisconnected) -> None:
        self.status = STATUS_RECONNECTING
        logger.warning("Signaling disconnected, reconnecting")
        try:
            self.transport.reconnect()
        except TransportError as e:
            self.status = STATUS_ERROR
            logger.error(f"Reconnect failed: {e}")
            self.notifier.notify("Network Error")

    def _on_established(self, remote_id: str) -> None:
        self.store.ensure_peer(remote_id, linked=True)
        self.notifier.notify(f"Connected to {remote_id}")

    def _on_lost(self, remote_id: str) -> None:
        logger.info(f"Lost connection to {remote_id}")
