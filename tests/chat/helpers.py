from __future__ import annotations

import asyncio
from typing import List, Optional, Sequence

from ia_ai.types import StreamChunk
from ia_tree.types import TokenAlternative, TokenLogprob, Turn


class ScriptedStream:
    """Stream function that replays canned chunks and records each call."""

    def __init__(self, *chunks: StreamChunk, error: Optional[Exception] = None, gate: Optional[asyncio.Event] = None):
        self.chunks = list(chunks)
        self.error = error
        self.gate = gate
        self.calls: List[List[Turn]] = []

    def __call__(self, turns: Sequence[Turn], signal: Optional[asyncio.Event] = None):
        self.calls.append(list(turns))
        return self._run()

    async def _run(self):
        for chunk in self.chunks:
            if self.gate is not None:
                await self.gate.wait()
            yield chunk
        if self.error is not None:
            raise self.error


def text(*pieces: str) -> List[StreamChunk]:
    return [StreamChunk(content=piece) for piece in pieces]


class ScriptedCompletion(ScriptedStream):
    """Completion function that replays canned chunks and records each prompt."""

    def __init__(self, *chunks: StreamChunk, error: Optional[Exception] = None, gate: Optional[asyncio.Event] = None):
        super().__init__(*chunks, error=error, gate=gate)
        self.prompts: List[str] = []

    def __call__(self, prompt: str, signal: Optional[asyncio.Event] = None):
        self.prompts.append(prompt)
        return self._run()


def tokens(*pieces: str) -> List[StreamChunk]:
    return [
        StreamChunk(
            content=piece,
            token_logprobs=[
                TokenLogprob(
                    token=piece,
                    probability=0.5,
                    alternatives=[
                        TokenAlternative(token=piece, probability=0.5),
                        TokenAlternative(token=piece.upper(), probability=0.3),
                    ],
                    segment="content",
                )
            ],
        )
        for piece in pieces
    ]
