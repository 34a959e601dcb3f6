"""Model-invocation layer for iaslate."""

from .config import ConfigError, load_provider_config
from .convert import to_model_messages
from .openai_compatible import (
    ProviderError,
    StreamAbortedError,
    create_completion_fn,
    create_stream_fn,
    list_models,
    stream_chat,
    stream_completion,
)
from .types import CompletionFn, ProviderConfig, StreamChunk, StreamFn

__all__ = [
    "CompletionFn",
    "ConfigError",
    "ProviderConfig",
    "ProviderError",
    "StreamAbortedError",
    "StreamChunk",
    "StreamFn",
    "create_completion_fn",
    "create_stream_fn",
    "list_models",
    "load_provider_config",
    "stream_chat",
    "stream_completion",
    "to_model_messages",
]
