"""Chat session layer for iaslate."""

from .sdk import create_chat_session, create_text_completion
from .session import ChatSession
from .stream_manager import StreamManager
from .text_completion import TextCompletion

__all__ = [
    "ChatSession",
    "StreamManager",
    "TextCompletion",
    "create_chat_session",
    "create_text_completion",
]
