"""Types shared by the model-invocation layer."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from ia_tree.types import TokenLogprob, Turn

DEFAULT_BASE_URL = "https://api.openai.com/v1"


class ProviderConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", protected_namespaces=())

    base_url: str = DEFAULT_BASE_URL
    api_key: Optional[str] = None
    model_id: str
    temperature: float = 0.3
    top_logprobs: int = 5
    request_logprobs: bool = False
    headers: Dict[str, str] = Field(default_factory=dict)


@dataclass
class StreamChunk:
    content: Optional[str] = None
    reasoning: Optional[str] = None
    token_logprobs: List[TokenLogprob] = field(default_factory=list)

    def is_empty(self) -> bool:
        return self.content is None and self.reasoning is None and not self.token_logprobs


StreamFn = Callable[[Sequence[Turn], Optional[asyncio.Event]], AsyncIterator[StreamChunk]]
CompletionFn = Callable[[str, Optional[asyncio.Event]], AsyncIterator[StreamChunk]]
