"""Token logprob parsing for OpenAI-compatible chat and text completion chunks."""

from __future__ import annotations

import math
from typing import Any, Dict, List, Mapping, Optional

from ia_tree.types import TokenAlternative, TokenLogprob, TokenSegment

from .types import StreamChunk


def _is_top_logprobs(value: Any) -> bool:
    if isinstance(value, list):
        return all(
            isinstance(entry, Mapping)
            and isinstance(entry.get("token"), str)
            and isinstance(entry.get("logprob"), (int, float))
            for entry in value
        )
    if isinstance(value, Mapping):
        return all(isinstance(entry, (int, float)) for entry in value.values())
    return False


def normalize_top_logprobs(raw: Any) -> List[TokenAlternative]:
    if not raw or not _is_top_logprobs(raw):
        return []
    if isinstance(raw, list):
        pairs = [(entry["token"], entry["logprob"]) for entry in raw]
    else:
        pairs = list(raw.items())
    alternatives: List[TokenAlternative] = []
    for token, logprob in pairs:
        try:
            probability = math.exp(logprob)
        except OverflowError:
            continue
        if math.isfinite(probability):
            alternatives.append(TokenAlternative(token=token, probability=probability))
    return alternatives


def with_fallback_token(alternatives: List[TokenAlternative], token: str) -> List[TokenAlternative]:
    if any(entry.token == token for entry in alternatives):
        return alternatives
    return [TokenAlternative(token=token, probability=0.0), *alternatives]


def to_token_logprob(token: str, top_logprobs: Any, segment: TokenSegment) -> TokenLogprob:
    alternatives = with_fallback_token(normalize_top_logprobs(top_logprobs), token)
    probability = next((entry.probability for entry in alternatives if entry.token == token), None)
    return TokenLogprob(token=token, probability=probability, alternatives=alternatives, segment=segment)


def _reasoning_text(delta: Mapping[str, Any]) -> Optional[str]:
    value = delta.get("reasoning_content")
    if isinstance(value, str):
        return value
    if isinstance(value, list) and all(isinstance(entry, str) for entry in value):
        return "".join(value)
    return None


def _first_choice(raw: Any) -> Optional[Mapping[str, Any]]:
    if not isinstance(raw, Mapping):
        return None
    choices = raw.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], Mapping):
        return None
    return choices[0]


def _entry_logprobs(logprobs: Any, segment: TokenSegment) -> List[TokenLogprob]:
    entries = logprobs.get("content") if isinstance(logprobs, Mapping) else None
    if not isinstance(entries, list):
        return []
    token_logprobs: List[TokenLogprob] = []
    for entry in entries:
        if not isinstance(entry, Mapping):
            continue
        token = entry.get("token")
        if not isinstance(token, str) or not token:
            continue
        token_logprobs.append(to_token_logprob(token, entry.get("top_logprobs"), segment))
    return token_logprobs


def _entry_top_logprobs(logprobs: Mapping[str, Any]) -> Any:
    entries = logprobs.get("content")
    if isinstance(entries, list) and entries and isinstance(entries[0], Mapping):
        candidate = entries[0].get("top_logprobs")
        if candidate and _is_top_logprobs(candidate):
            return candidate
    return None


def _listed_top_logprobs(logprobs: Mapping[str, Any]) -> Any:
    listed = logprobs.get("top_logprobs")
    if isinstance(listed, list):
        for candidate in listed:
            if candidate and _is_top_logprobs(candidate):
                return candidate
    return None


def parse_chat_chunk(raw: Any) -> Optional[StreamChunk]:
    """Turn one streamed ``chat.completion.chunk`` payload into a StreamChunk.

    Per-token entries under ``logprobs.content`` win. Without them, a chunk
    that still carries a ``logprobs`` object becomes a single token for the
    whole delta text, scored from the first available top-logprobs list.
    """
    choice = _first_choice(raw)
    if choice is None:
        return None
    delta: Dict[str, Any] = choice.get("delta") if isinstance(choice.get("delta"), Mapping) else {}

    content = delta.get("content") if isinstance(delta.get("content"), str) else None
    reasoning = _reasoning_text(delta)
    segment: TokenSegment = "reasoning" if reasoning is not None else "content"

    logprobs = choice.get("logprobs")
    token_logprobs = _entry_logprobs(logprobs, segment)
    text = reasoning if segment == "reasoning" else content
    if not token_logprobs and isinstance(logprobs, Mapping) and text:
        fallback = _entry_top_logprobs(logprobs) or _listed_top_logprobs(logprobs)
        token_logprobs = [to_token_logprob(text, fallback, segment)]

    chunk = StreamChunk(content=content or None, reasoning=reasoning or None, token_logprobs=token_logprobs)
    return None if chunk.is_empty() else chunk


def parse_completion_chunk(raw: Any) -> Optional[StreamChunk]:
    """Turn one streamed ``text_completion`` payload into a StreamChunk.

    Every non-empty chunk carries token logprobs, so the generated text is
    always the concatenation of its tokens.
    """
    choice = _first_choice(raw)
    if choice is None:
        return None
    text = choice.get("text") if isinstance(choice.get("text"), str) else None
    logprobs = choice.get("logprobs")

    token_logprobs = _entry_logprobs(logprobs, "content")
    if token_logprobs:
        content = text if text is not None else "".join(entry.token for entry in token_logprobs)
        return StreamChunk(content=content or None, token_logprobs=token_logprobs)

    if not text:
        return None
    fallback = None
    if isinstance(logprobs, Mapping):
        fallback = _listed_top_logprobs(logprobs) or _entry_top_logprobs(logprobs)
    return StreamChunk(content=text, token_logprobs=[to_token_logprob(text, fallback, "content")])
