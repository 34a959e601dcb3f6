"""Raw text completion controller with per-token rerolls."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Optional

from ia_ai.types import CompletionFn
from ia_tree.content import coerce_logprobs
from ia_tree.types import TokenAlternative, TokenLogprob

logger = logging.getLogger(__name__)


class TextCompletion:
    """Free-form text buffer continued by a completion model.

    ``text`` is always ``seed_text`` followed by the tokens in
    ``token_logprobs``; editing the buffer outside of generation makes the
    edited text the new seed and drops the tokens.
    """

    def __init__(self, completion_fn: CompletionFn, text: str = "") -> None:
        self._completion_fn = completion_fn
        self._seed = text
        self._tokens: List[TokenLogprob] = []
        self._text = text
        self._token: Optional[asyncio.Event] = None

    @property
    def text(self) -> str:
        return self._text

    @property
    def seed_text(self) -> str:
        return self._seed

    @property
    def token_logprobs(self) -> List[TokenLogprob]:
        return list(self._tokens)

    @property
    def is_generating(self) -> bool:
        return self._token is not None

    def set_text(self, value: str) -> None:
        """Replace the buffer; tokens are reconciled on the next predict."""
        self._text = value

    def overwrite_text(self, value: str) -> None:
        self._seed = value
        self._tokens = []
        self._text = value

    def _expected_text(self) -> str:
        return self._seed + "".join(entry.token for entry in self._tokens)

    async def predict(self) -> None:
        """Continue the buffer from its current text.

        Does nothing while a generation is already running.
        """
        if self.is_generating:
            return
        if self._text != self._expected_text():
            self._seed = self._text
            self._tokens = []
        await self._run(self._text)

    def cancel(self) -> None:
        token = self._token
        self._token = None
        if token is not None:
            token.set()
            logger.info("Cancelled text completion")

    async def reroll_from_token(self, index: int, replacement: Any) -> None:
        """Swap the token at ``index`` for ``replacement`` and regenerate after it.

        Tokens after ``index`` are dropped. Out-of-range indexes are ignored.
        """
        if index < 0 or index >= len(self._tokens):
            return
        if self.is_generating:
            self.cancel()
        choice = TokenAlternative.model_validate(replacement)
        target = self._tokens[index]
        entry = TokenLogprob(
            token=choice.token,
            probability=choice.probability,
            alternatives=[choice, *(alt for alt in target.alternatives if alt.token != choice.token)],
            segment=target.segment,
        )
        self._tokens = [*self._tokens[:index], entry]
        self._text = self._expected_text()
        await self._run(self._text)

    async def _run(self, prompt: str) -> None:
        token = asyncio.Event()
        self._token = token
        logger.info("Completing %d characters of text", len(prompt))

        stream = None
        try:
            stream = self._completion_fn(prompt, token)
            async for chunk in stream:
                if token.is_set():
                    break
                if chunk.content:
                    self._text += chunk.content
                if chunk.token_logprobs:
                    self._tokens = [*self._tokens, *coerce_logprobs(chunk.token_logprobs)]
        except Exception:
            if token.is_set():
                return
            logger.exception("Text completion failed")
            raise
        finally:
            aclose = getattr(stream, "aclose", None)
            if aclose is not None:
                await aclose()
            if self._token is token:
                self._token = None
