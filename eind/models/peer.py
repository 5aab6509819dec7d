"""
Peer link and call data models.

A Connection is owned by the ConnectionRegistry and a CallSession by the
CallSessionManager; everything else refers to them by remote identifier.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class CallDirection(str, Enum):
    OUTGOING = "outgoing"
    INCOMING = "incoming"


class CallPhase(str, Enum):
    IDLE = "idle"
    RINGING = "ringing"
    DIALING = "dialing"
    ACTIVE = "active"


class CallKind(str, Enum):
    AUDIO = "audio"
    VIDEO = "video"


@dataclass
class Connection:
    """One logical link to a remote endpoint"""

    remote_id: str
    handle: Any  # transport ConnectionHandle
    is_open: bool = False
    last_activity: float = 0.0


@dataclass
class CallSession:
    """The single active call and its media handles"""

    remote_id: str
    direction: CallDirection
    phase: CallPhase
    call: Any  # transport CallHandle
    kind: CallKind = CallKind.VIDEO
    local_media: Optional[Any] = None
    remote_media: Optional[Any] = None
    call_closed: bool = False
