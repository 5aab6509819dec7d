"""
Call routes for the Eind API.

Provides endpoints for:
- Current call state
- Start, answer, reject, cancel and end a call
"""

from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel
from typing import Optional

from eind.core.session import PeerSession
from eind.api.routes.dependencies import get_session
from eind.models.peer import CallKind


router = APIRouter()


class StartCallRequest(BaseModel):
    """Request model for starting a call"""

    conversation_id: str
    kind: CallKind = CallKind.VIDEO


class CallStateResponse(BaseModel):
    """Response model for call state"""

    phase: str
    remote_id: Optional[str] = None
    direction: Optional[str] = None
    kind: Optional[str] = None
    has_local_media: bool = False
    has_remote_media: bool = False


def call_state(session: PeerSession) -> dict:
    call = session.calls.session
    if call is None:
        return {"phase": session.calls.phase.value}
    return {
        "phase": call.phase.value,
        "remote_id": call.remote_id,
        "direction": call.direction.value,
        "kind": call.kind.value,
        "has_local_media": call.local_media is not None,
        "has_remote_media": call.remote_media is not None,
    }


@router.get("/", response_model=CallStateResponse)
async def get_call(session: PeerSession = Depends(get_session)):
    """Get the current call state"""
    return call_state(session)


@router.post("/start", response_model=CallStateResponse)
async def start_call(req: StartCallRequest, session: PeerSession = Depends(get_session)):
    """Start an audio or video call with a P2P conversation"""
    placed = await session.start_call(req.conversation_id, req.kind)
    session.pump()
    if not placed:
        notices = session.notifier.active()
        detail = notices[-1].text if notices else "Call could not be started"
        raise HTTPException(status_code=400, detail=detail)
    return call_state(session)


@router.post("/answer", response_model=CallStateResponse)
async def answer_call(session: PeerSession = Depends(get_session)):
    """Answer the ringing call"""
    answered = await session.answer_call()
    session.pump()
    if not answered:
        raise HTTPException(status_code=400, detail="No call to answer")
    return call_state(session)


@router.post("/reject", response_model=CallStateResponse)
async def reject_call(session: PeerSession = Depends(get_session)):
    """Reject the ringing call"""
    if not session.reject_call():
        raise HTTPException(status_code=400, detail="No call to reject")
    session.pump()
    return call_state(session)


@router.post("/cancel", response_model=CallStateResponse)
async def cancel_call(session: PeerSession = Depends(get_session)):
    """Cancel an outgoing call that has not been accepted"""
    if not session.cancel_call():
        raise HTTPException(status_code=400, detail="No outgoing call to cancel")
    session.pump()
    return call_state(session)


@router.post("/end", response_model=CallStateResponse)
async def end_call(session: PeerSession = Depends(get_session)):
    """Hang up; safe to call when no call is active"""
    session.end_call()
    session.pump()
    return call_state(session)
