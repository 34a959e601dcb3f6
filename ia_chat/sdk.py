"""Entry points for embedding iaslate chat and text completion."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

import httpx

from ia_ai.config import get_default_system_prompt, load_provider_config
from ia_ai.openai_compatible import create_completion_fn, create_stream_fn
from ia_ai.types import CompletionFn, ProviderConfig, StreamFn
from ia_tree.tree import ConversationTree

from .session import ChatSession
from .stream_manager import StreamManager
from .text_completion import TextCompletion


def create_chat_session(
    *,
    config: Optional[ProviderConfig] = None,
    env_file: Optional[Union[str, Path]] = None,
    tree: Optional[ConversationTree] = None,
    stream_fn: Optional[StreamFn] = None,
    system_prompt: Optional[str] = None,
    client: Optional[httpx.AsyncClient] = None,
    snapshot_path: Optional[Union[str, Path]] = None,
) -> ChatSession:
    if stream_fn is None:
        resolved_config = config or load_provider_config(env_file)
        stream_fn = create_stream_fn(resolved_config, client)
    session = ChatSession(
        tree or ConversationTree(),
        stream_fn,
        default_system_prompt=system_prompt or get_default_system_prompt(),
        stream_manager=StreamManager(),
    )
    if snapshot_path is not None and Path(snapshot_path).exists():
        session.load_snapshot(snapshot_path)
    session.ensure_system_message()
    return session


def create_text_completion(
    *,
    config: Optional[ProviderConfig] = None,
    env_file: Optional[Union[str, Path]] = None,
    completion_fn: Optional[CompletionFn] = None,
    text: str = "",
    client: Optional[httpx.AsyncClient] = None,
) -> TextCompletion:
    if completion_fn is None:
        resolved_config = config or load_provider_config(env_file)
        completion_fn = create_completion_fn(resolved_config, client)
    return TextCompletion(completion_fn, text)
