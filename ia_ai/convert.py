"""Conversion from compiled tree paths to chat completion messages."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from ia_tree.content import content_to_text
from ia_tree.types import MessageContent, Turn


def _user_content(content: MessageContent) -> Any:
    if isinstance(content, str):
        return content
    parts: List[Dict[str, Any]] = []
    for part in content:
        if part.type == "text":
            parts.append({"type": "text", "text": part.text})
        else:
            parts.append({"type": "image_url", "image_url": {"url": part.image}})
    return parts


def to_model_messages(turns: Sequence[Turn], assistant_prefix: Optional[str] = None) -> List[Dict[str, Any]]:
    messages: List[Dict[str, Any]] = []
    for turn in turns:
        if turn.role == "tool":
            continue
        if turn.role == "user":
            messages.append({"role": "user", "content": _user_content(turn.content)})
        else:
            messages.append({"role": turn.role, "content": content_to_text(turn.content)})
    if assistant_prefix:
        messages.append({"role": "assistant", "content": assistant_prefix})
    return messages
