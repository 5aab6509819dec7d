"""
Conversation routes for the Eind API.

Provides endpoints for:
- Chat list (most recently active first)
- Chat window for one conversation
- Selecting the viewed conversation
- Sending text and inline attachments
"""

from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel
from typing import Optional, List

from eind.core.session import PeerSession
from eind.api.routes.dependencies import conversation_view, get_session, message_view


router = APIRouter()


class MessageResponse(BaseModel):
    """Response model for a message"""

    id: int
    type: str
    content: str
    file_name: Optional[str] = None
    sender: str
    time: str


class ConversationResponse(BaseModel):
    """Response model for a conversation in the chat list"""

    id: str
    name: str
    avatar: str
    last_msg: str
    time: str
    unread: int
    is_p2p: bool


class ConversationDetailResponse(ConversationResponse):
    """Response model for the chat window"""

    messages: List[MessageResponse]


class ConversationListResponse(BaseModel):
    """Response model for the chat list"""

    conversations: List[ConversationResponse]
    count: int
    active_id: Optional[str] = None


class SendRequest(BaseModel):
    """Request model for sending a message"""

    type: str = "text"
    content: str
    file_name: Optional[str] = None


@router.get("/", response_model=ConversationListResponse)
async def list_conversations(session: PeerSession = Depends(get_session)):
    """Get the chat list"""
    conversations = session.store.conversations
    return {
        "conversations": [conversation_view(c) for c in conversations],
        "count": len(conversations),
        "active_id": session.store.active_id,
    }


@router.get("/{conversation_id}", response_model=ConversationDetailResponse)
async def get_conversation(conversation_id: str, session: PeerSession = Depends(get_session)):
    """Get one conversation with its messages"""
    conv = session.store.get(conversation_id)
    if conv is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return conversation_view(conv, with_messages=True)


@router.post("/{conversation_id}/select", response_model=ConversationDetailResponse)
async def select_conversation(conversation_id: str, session: PeerSession = Depends(get_session)):
    """Open a conversation; clears its unread counter"""
    conv = session.select_conversation(conversation_id)
    if conv is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return conversation_view(conv, with_messages=True)


@router.post("/deselect")
async def deselect_conversation(session: PeerSession = Depends(get_session)):
    """Close the chat window"""
    session.select_conversation(None)
    return {"active_id": None}


@router.post("/{conversation_id}/messages", response_model=MessageResponse)
async def send_message(
    conversation_id: str,
    req: SendRequest,
    session: PeerSession = Depends(get_session),
):
    """Send a message to a conversation"""
    if session.store.get(conversation_id) is None:
        raise HTTPException(status_code=404, detail="Conversation not found")

    result = session.send_message(conversation_id, req.type, req.content, req.file_name)
    session.pump()
    if not result["success"]:
        raise HTTPException(status_code=400, detail=result.get("error", "Send failed"))
    return message_view(result["message"])
