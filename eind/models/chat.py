"""
聊天相关的数据模型

定义了会话和消息的数据结构
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List


class MessageKind(str, Enum):
    """消息内容类型"""

    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"


class Sender(str, Enum):
    """消息发送方"""

    ME = "me"
    THEM = "them"


@dataclass(frozen=True)
class Message:
    """消息数据模型 (创建后不可变)"""

    id: int  # 会话期间单调递增
    kind: MessageKind
    content: str  # 文本或内联 data URI
    sender: Sender
    sent_at: float  # 本地观察到的时间戳
    file_name: Optional[str] = None


@dataclass
class Conversation:
    """会话数据模型"""

    id: str  # 远端标识符, 或助手的保留 id
    name: str
    avatar: str
    messages: List[Message] = field(default_factory=list)
    unread: int = 0
    last_activity: float = 0.0
    last_msg: str = ""
    is_p2p: bool = True
