"""Helpers for plain-text and structured message content."""

from __future__ import annotations

from typing import Any, Iterable, List, Optional

from pydantic import TypeAdapter

from .types import ROLES, ContentPart, MessageContent, Role, TextPart, TokenLogprob

_CONTENT_ADAPTER: TypeAdapter[MessageContent] = TypeAdapter(MessageContent)


def coerce_content(value: Any) -> MessageContent:
    """Validate a string, a list of parts, or their plain-dict form."""
    return _CONTENT_ADAPTER.validate_python(value)


def coerce_logprobs(values: Iterable[Any]) -> List[TokenLogprob]:
    return [
        value if isinstance(value, TokenLogprob) else TokenLogprob.model_validate(value)
        for value in values
    ]


def append_text_to_content(content: MessageContent, delta: Optional[str]) -> MessageContent:
    if delta is None:
        return content
    if isinstance(content, str):
        return content + delta
    parts: List[ContentPart] = list(content)
    if parts and parts[-1].type == "text":
        tail = parts[-1]
        parts[-1] = tail.model_copy(update={"text": tail.text + delta})
        return parts
    parts.append(TextPart(text=delta))
    return parts


def has_message_content(content: MessageContent) -> bool:
    if isinstance(content, str):
        return bool(content.strip())
    for part in content:
        if part.type == "image":
            if part.image:
                return True
        elif part.text.strip():
            return True
    return False


def content_to_text(content: MessageContent) -> str:
    if isinstance(content, str):
        return content
    return "\n\n".join(part.text for part in content if part.type == "text")


def coerce_role(role: Any) -> Role:
    if role in ROLES:
        return role
    return "assistant"
