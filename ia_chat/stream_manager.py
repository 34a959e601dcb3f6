"""Cancellation tokens for in-flight assistant streams."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class StreamManager:
    """Track one abort token per streaming node id.

    Tokens belong to the caller. Aborting a stream only sets its token; the
    node's status is left to whoever drives the stream.
    """

    def __init__(self) -> None:
        self._tokens: Dict[str, asyncio.Event] = {}
        self._latest: Optional[str] = None

    @property
    def latest(self) -> Optional[str]:
        return self._latest

    def set_latest(self, node_id: Optional[str]) -> None:
        self._latest = node_id

    def clear_latest_if(self, node_id: str) -> None:
        if self._latest == node_id:
            self._latest = None

    def register(self, node_id: str, token: Optional[asyncio.Event] = None) -> asyncio.Event:
        token = token or asyncio.Event()
        self._tokens[node_id] = token
        self._latest = node_id
        return token

    def release(self, node_id: str, token: asyncio.Event) -> None:
        if self._tokens.get(node_id) is token:
            del self._tokens[node_id]

    def is_streaming(self, node_id: str) -> bool:
        return node_id in self._tokens

    def active_ids(self) -> list[str]:
        return list(self._tokens)

    def abort(self, node_id: str) -> None:
        token = self._tokens.pop(node_id, None)
        if token is None:
            return
        token.set()
        logger.info("Aborted stream for %s", node_id)
        self.clear_latest_if(node_id)

    def abort_all(self) -> None:
        for token in self._tokens.values():
            token.set()
        if self._tokens:
            logger.info("Aborted %d streams", len(self._tokens))
        self._tokens = {}
        self._latest = None
