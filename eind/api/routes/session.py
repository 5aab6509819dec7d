"""
Session routes for the Eind API.

Provides endpoints for:
- Local identity and network status (shown for QR / copy sharing)
- Connecting to a remote identifier
- Active notifications
"""

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import List

from eind.core.session import PeerSession
from eind.api.routes.dependencies import get_session


router = APIRouter()

TRUST_LABEL = "End-to-end encrypted"


class SessionResponse(BaseModel):
    """Response model for session info"""

    local_id: str
    status: str
    trust_label: str
    connected_peers: List[str]


class ConnectRequest(BaseModel):
    """Request model for connecting to a peer"""

    remote_id: str


class NotificationResponse(BaseModel):
    id: int
    text: str


class NotificationListResponse(BaseModel):
    notifications: List[NotificationResponse]
    count: int


@router.get("/", response_model=SessionResponse)
async def session_info(session: PeerSession = Depends(get_session)):
    """Get local identifier and network status"""
    return {
        "local_id": session.local_id,
        "status": session.status,
        "trust_label": TRUST_LABEL,
        "connected_peers": session.registry.open_ids(),
    }


@router.post("/connect")
async def connect(req: ConnectRequest, session: PeerSession = Depends(get_session)):
    """Connect to a remote identifier (scanned or pasted)"""
    remote_id = req.remote_id.strip()
    if not remote_id:
        raise HTTPException(status_code=400, detail="remote_id is required")

    session.connect_to(remote_id)
    session.pump()
    return {
        "remote_id": remote_id,
        "connected": session.registry.is_open(remote_id),
    }


@router.get("/notifications", response_model=NotificationListResponse)
async def notifications(session: PeerSession = Depends(get_session)):
    """Notifications that are still visible"""
    items = session.notifier.active()
    return {
        "notifications": [{"id": n.id, "text": n.text} for n in items],
        "count": len(items),
    }
