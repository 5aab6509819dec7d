"""
Conversation store

The canonical in-memory log of conversations for this endpoint. It is only
written through the MessageRouter (inbound messages and local sends); the
presentation layer reads it and selects the viewed conversation.

Invariants kept here:
- conversations are ordered most-recently-active first
- the viewed conversation always has unread == 0
"""

import random
from itertools import count
from typing import List, Optional, Sequence

from eind.core.identity import display_name
from eind.core.scheduling import Clock
from eind.models.chat import Conversation, Message, MessageKind, Sender


BOT_ID = "bot"
BOT_NAME = "Eind Assistant"
BOT_AVATAR = "🤖"
BOT_GREETING = "Welcome to Eind!"

BOT_REPLIES = (
    "Namaste! 🙏 I am Eind Assistant.",
    "To chat with a friend, click the QR icon above!",
    "I am made in India by Anshal! 🇮🇳",
    "I can't make calls, but your P2P chats can!",
    "Need help? Just scan a friend's code.",
)

PEER_AVATAR = "👤"
LINKED_AVATAR = "🔗"
LINKED_PREVIEW = "Connected via Eind"

_PREVIEWS = {
    MessageKind.IMAGE: "📷 Photo",
    MessageKind.VIDEO: "🎥 Video",
}


def pick_reply(pool: Sequence[str], rng: random.Random) -> str:
    """Choose one assistant reply; deterministic for a seeded rng."""
    if not pool:
        raise ValueError("Reply pool is empty")
    return pool[rng.randrange(len(pool))]


def preview_for(kind: MessageKind, content: str) -> str:
    if kind == MessageKind.TEXT:
        return content
    return _PREVIEWS[kind]


class ConversationStore:
    """In-memory conversation list"""

    def __init__(self, clock: Clock):
        self.clock = clock
        self._conversations: List[Conversation] = []
        self._message_ids = count(1)
        self.active_id: Optional[str] = None

        self._conversations.append(
            Conversation(
                id=BOT_ID,
                name=BOT_NAME,
                avatar=BOT_AVATAR,
                last_msg=BOT_GREETING,
                last_activity=clock.now(),
                is_p2p=False,
            )
        )

    @property
    def conversations(self) -> List[Conversation]:
        """Conversations, most recently active first"""
        return list(self._conversations)

    def get(self, conversation_id: str) -> Optional[Conversation]:
        for conv in self._conversations:
            if conv.id == conversation_id:
                return conv
        return None

    def select(self, conversation_id: Optional[str]) -> Optional[Conversation]:
        """Mark a conversation as viewed and clear its unread counter.

        Returns:
            The selected conversation, or None if the id is unknown or None
        """
        if conversation_id is None:
            self.active_id = None
            return None
        conv = self.get(conversation_id)
        if conv is None:
            return None
        self.active_id = conv.id
        conv.unread = 0
        return conv

    def ensure_peer(self, remote_id: str, linked: bool = False) -> Conversation:
        """Get the conversation for remote_id, creating it at the top if absent.

        Args:
            remote_id: Remote endpoint identifier
            linked: True when created because a connection was established
                (link avatar and greeting preview), False when created by an
                inbound message
        """
        conv = self.get(remote_id)
        if conv is not None:
            return conv

        conv = Conversation(
            id=remote_id,
            name=display_name(remote_id),
            avatar=LINKED_AVATAR if linked else PEER_AVATAR,
            last_msg=LINKED_PREVIEW if linked else "",
            last_activity=self.clock.now(),
            is_p2p=True,
        )
        self._conversations.insert(0, conv)
        return conv

    def append(
        self,
        conv: Conversation,
        kind: MessageKind,
        content: str,
        sender: Sender,
        file_name: Optional[str] = None,
    ) -> Message:
        """Append a message and update preview, unread and ordering."""
        now = self.clock.now()
        message = Message(
            id=next(self._message_ids),
            kind=kind,
            content=content,
            sender=sender,
            sent_at=now,
            file_name=file_name,
        )
        conv.messages.append(message)
        conv.last_msg = preview_for(kind, content)
        conv.last_activity = now

        if conv.id == self.active_id:
            conv.unread = 0
        elif sender == Sender.THEM:
            conv.unread += 1

        self._move_to_front(conv)
        return message

    def _move_to_front(self, conv: Conversation) -> None:
        self._conversations.remove(conv)
        self._conversations.insert(0, conv)
