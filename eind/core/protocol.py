"""
Wire format of payloads exchanged over a connection.

    {"type": "text" | "image" | "video" | "heartbeat",
     "content": str?, "text": str?, "fileName": str?}
"""

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from eind.models.chat import MessageKind


HEARTBEAT_TYPE = "heartbeat"
HEARTBEAT = {"type": HEARTBEAT_TYPE}


class MalformedPayload(Exception):
    """Raised when inbound data is not a recognised chat payload"""

    pass


class WirePayload(BaseModel):
    """A chat payload as it travels between peers"""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["text", "image", "video"]
    content: Optional[str] = None
    text: Optional[str] = None
    file_name: Optional[str] = Field(default=None, alias="fileName")

    @property
    def kind(self) -> MessageKind:
        return MessageKind(self.type)

    @property
    def body(self) -> Optional[str]:
        return self.content or self.text


def is_heartbeat(payload: Any) -> bool:
    return isinstance(payload, dict) and payload.get("type") == HEARTBEAT_TYPE


def parse_payload(payload: Any) -> WirePayload:
    """Validate an inbound chat payload.

    Raises:
        MalformedPayload: For non-dict data, unknown types or a missing body
    """
    if not isinstance(payload, dict):
        raise MalformedPayload(f"Expected an object, got {type(payload).__name__}")
    try:
        parsed = WirePayload.model_validate(payload)
    except ValidationError as e:
        raise MalformedPayload(str(e)) from e
    if not parsed.body:
        raise MalformedPayload(f"{parsed.type} payload without content")
    return parsed


def build_payload(kind: MessageKind, content: str, file_name: Optional[str] = None) -> dict:
    """Build the outbound wire dict for a local message."""
    return {
        "type": kind.value,
        "content": content,
        "fileName": file_name,
        "text": content if kind == MessageKind.TEXT else None,
    }
