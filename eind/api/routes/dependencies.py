"""
Shared dependencies for API routes.

Provides FastAPI dependency injection for the running PeerSession and the
view helpers the route modules share.
"""

from datetime import datetime
from typing import Optional

from fastapi import HTTPException

from eind.core.config import load_config
from eind.core.logging_config import get_logger
from eind.core.loopback import LoopbackMediaDevices, LoopbackNetwork, LoopbackTransport
from eind.core.session import STATUS_ERROR, PeerSession
from eind.models.chat import Conversation, Message

logger = get_logger(__name__)

# Endpoints started by this process share one signaling directory
DEFAULT_NETWORK = LoopbackNetwork()

_SESSION: Optional[PeerSession] = None


def set_session(session: Optional[PeerSession]) -> None:
    """Install the session the API operates on (None to detach)."""
    global _SESSION
    _SESSION = session


def build_default_session() -> PeerSession:
    """Create and start a session from the on-disk config.

    Must run on the event loop serving the API so transport events and
    heartbeat timers land on it.
    """
    cfg = load_config()
    session = PeerSession(
        LoopbackTransport(DEFAULT_NETWORK),
        LoopbackMediaDevices(),
        config=cfg,
    )
    session.start()
    session.pump()
    logger.info(f"API session {session.local_id} status: {session.status}")
    return session


async def get_session() -> PeerSession:
    """Get the running PeerSession, starting one on first use.

    Raises:
        HTTPException: If the session could not be brought up
    """
    global _SESSION
    if _SESSION is None:
        session = build_default_session()
        if session.status == STATUS_ERROR:
            session.shutdown()
            raise HTTPException(status_code=503, detail="Session failed to start")
        _SESSION = session
    return _SESSION


def close_session() -> None:
    """Shut down and detach the current session, if any."""
    global _SESSION
    if _SESSION is not None:
        _SESSION.shutdown()
        _SESSION = None


def format_time(ts: float) -> str:
    return datetime.fromtimestamp(ts).strftime("%H:%M")


def message_view(m: Message) -> dict:
    return {
        "id": m.id,
        "type": m.kind.value,
        "content": m.content,
        "file_name": m.file_name,
        "sender": m.sender.value,
        "time": format_time(m.sent_at),
    }


def conversation_view(c: Conversation, with_messages: bool = False) -> dict:
    view = {
        "id": c.id,
        "name": c.name,
        "avatar": c.avatar,
        "last_msg": c.last_msg,
        "time": format_time(c.last_activity),
        "unread": c.unread,
        "is_p2p": c.is_p2p,
    }
    if with_messages:
        view["messages"] = [message_view(m) for m in c.messages]
    return view
