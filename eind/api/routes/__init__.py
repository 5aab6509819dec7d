"""API 路由模块"""

from eind.api.routes import (
    session,
    conversations,
    calls,
)

__all__ = ["session", "conversations", "calls"]
