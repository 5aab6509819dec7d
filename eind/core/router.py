"""
Message router

Inbound: classifies payloads forwarded by the ConnectionRegistry and records
them in the ConversationStore.

Outbound: sends local messages over the registry and records them only once
the channel accepted them. Messages to the assistant conversation never touch
the network; the assistant answers after a short delay instead.

    registry --(remote_id, payload)--> route_inbound --> ConversationStore
    send_local_message --> registry.send --ok--> ConversationStore
"""

import random
from typing import Any, Optional

from eind.core.conversations import BOT_ID, BOT_REPLIES, ConversationStore, pick_reply
from eind.core.logging_config import get_logger
from eind.core.notifications import Notifier
from eind.core.protocol import MalformedPayload, build_payload, parse_payload
from eind.core.registry import ConnectionRegistry
from eind.core.scheduling import Clock
from eind.models.chat import Message, MessageKind, Sender

logger = get_logger(__name__)

OFFLINE_NOTICE = "Send failed (User Offline)"


class DeliveryFailure(Exception):
    """Raised when a message cannot be handed to an open connection"""

    pass


class MessageRouter:
    def __init__(
        self,
        store: ConversationStore,
        registry: ConnectionRegistry,
        clock: Clock,
        notifier: Notifier,
        rng: Optional[random.Random] = None,
        bot_reply_delay: float = 1.0,
        max_attachment_bytes: Optional[int] = None,
    ):
        self.store = store
        self.registry = registry
        self.clock = clock
        self.notifier = notifier
        self.rng = rng or random.Random()
        self.bot_reply_delay = bot_reply_delay
        self.max_attachment_bytes = max_attachment_bytes

    def route_inbound(self, remote_id: str, payload: Any) -> Optional[Message]:
        """Record one inbound chat payload.

        Returns:
            The recorded Message, or None if the payload was dropped
        """
        try:
            parsed = parse_payload(payload)
        except MalformedPayload as e:
            logger.debug(f"Dropping malformed payload from {remote_id}: {e}")
            return None

        conv = self.store.ensure_peer(remote_id)
        return self.store.append(
            conv, parsed.kind, parsed.body, Sender.THEM, file_name=parsed.file_name
        )

    def send_local_message(
        self,
        conversation_id: str,
        kind: MessageKind,
        content: str,
        file_name: Optional[str] = None,
    ) -> dict:
        """Send a message from the local user.

        Args:
            conversation_id: Target conversation
            kind: text, image or video
            content: Text, or the attachment as an inline data URI
            file_name: Original attachment file name

        Returns:
            dict with keys:
                - conversation_id: str
                - success: bool
                - message: Message (only on success)
                - error: str (optional) - Reason if nothing was sent
        """
        conv = self.store.get(conversation_id)
        if conv is None:
            return {
                "conversation_id": conversation_id,
                "success": False,
                "error": f"Conversation {conversation_id} not found",
            }

        try:
            kind = MessageKind(kind)
        except ValueError:
            return {
                "conversation_id": conversation_id,
                "success": False,
                "error": f"Unsupported message kind: {kind}",
            }

        if not content:
            return {
                "conversation_id": conversation_id,
                "success": False,
                "error": "Message is empty",
            }

        if (
            kind != MessageKind.TEXT
            and self.max_attachment_bytes is not None
            and len(content) > self.max_attachment_bytes
        ):
            return {
                "conversation_id": conversation_id,
                "success": False,
                "error": "File too large for P2P",
            }

        if conv.is_p2p:
            try:
                self._deliver(conv.id, build_payload(kind, content, file_name))
            except DeliveryFailure as e:
                logger.info(f"Delivery to {conv.id} failed: {e}")
                self.notifier.notify(OFFLINE_NOTICE)
                return {
                    "conversation_id": conversation_id,
                    "success": False,
                    "error": str(e),
                }

        message = self.store.append(conv, kind, content, Sender.ME, file_name=file_name)

        if conv.id == BOT_ID:
            self.clock.call_later(self.bot_reply_delay, self._bot_reply)

        return {"conversation_id": conversation_id, "success": True, "message": message}

    def _deliver(self, remote_id: str, payload: dict) -> None:
        if not self.registry.send(remote_id, payload):
            raise DeliveryFailure(f"No open connection to {remote_id}")

    def _bot_reply(self) -> None:
        conv = self.store.get(BOT_ID)
        reply = pick_reply(BOT_REPLIES, self.rng)
        self.store.append(conv, MessageKind.TEXT, reply, Sender.THEM)
