"""Streaming client for OpenAI-compatible chat completion endpoints."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Sequence

import httpx

from ia_tree.types import Turn

from .convert import to_model_messages
from .logprobs import parse_chat_chunk, parse_completion_chunk
from .types import CompletionFn, ProviderConfig, StreamChunk, StreamFn

logger = logging.getLogger(__name__)

PLACEHOLDER_API_KEY = "_PLACEHOLDER_"


class ProviderError(RuntimeError):
    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StreamAbortedError(RuntimeError):
    pass


def normalize_base_url(base_url: str) -> str:
    return base_url.strip().rstrip("/")


def build_url(base_url: str, path: str) -> str:
    normalized = normalize_base_url(base_url)
    if not normalized:
        raise ProviderError("Base URL is required")
    return f"{normalized}{'' if path.startswith('/') else '/'}{path}"


def build_headers(config: ProviderConfig) -> Dict[str, str]:
    headers = {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {config.api_key or PLACEHOLDER_API_KEY}",
    }
    headers.update(config.headers)
    return headers


def build_params(config: ProviderConfig, messages: List[Dict[str, Any]]) -> Dict[str, Any]:
    params: Dict[str, Any] = {
        "model": config.model_id,
        "messages": messages,
        "temperature": config.temperature,
        "stream": True,
    }
    if config.request_logprobs:
        params["logprobs"] = True
        params["top_logprobs"] = config.top_logprobs
    return params


def build_completion_params(
    config: ProviderConfig,
    prompt: str,
    max_tokens: Optional[int] = None,
) -> Dict[str, Any]:
    params: Dict[str, Any] = {
        "model": config.model_id,
        "prompt": prompt,
        "temperature": config.temperature,
        "stream": True,
        "logprobs": config.top_logprobs,
    }
    if max_tokens is not None:
        params["max_tokens"] = max_tokens
    return params


def _error_detail(body: bytes) -> Optional[str]:
    try:
        payload = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    return None


def _check_abort(signal: Optional[asyncio.Event]) -> None:
    if signal is not None and signal.is_set():
        raise StreamAbortedError("Request was aborted")


async def iter_sse_payloads(
    response: httpx.Response,
    signal: Optional[asyncio.Event] = None,
) -> AsyncIterator[Any]:
    async for line in response.aiter_lines():
        _check_abort(signal)
        line = line.strip()
        if not line.startswith("data:"):
            continue
        data = line[len("data:") :].strip()
        if not data:
            continue
        if data == "[DONE]":
            break
        try:
            yield json.loads(data)
        except json.JSONDecodeError:
            logger.debug("Skipping malformed stream chunk: %s", data[:200])


async def _stream_chunks(
    config: ProviderConfig,
    path: str,
    params: Dict[str, Any],
    parse: Callable[[Any], Optional[StreamChunk]],
    signal: Optional[asyncio.Event],
    client: Optional[httpx.AsyncClient],
) -> AsyncIterator[StreamChunk]:
    _check_abort(signal)
    url = build_url(config.base_url, path)
    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=None)
    try:
        async with http.stream("POST", url, json=params, headers=build_headers(config)) as response:
            if response.status_code >= 400:
                body = await response.aread()
                detail = _error_detail(body)
                raise ProviderError(detail or f"Request failed ({response.status_code})", response.status_code)
            async for payload in iter_sse_payloads(response, signal):
                chunk = parse(payload)
                if chunk is not None:
                    yield chunk
    finally:
        if owns_client:
            await http.aclose()


async def stream_chat(
    config: ProviderConfig,
    messages: List[Dict[str, Any]],
    *,
    signal: Optional[asyncio.Event] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> AsyncIterator[StreamChunk]:
    params = build_params(config, messages)
    async for chunk in _stream_chunks(config, "/chat/completions", params, parse_chat_chunk, signal, client):
        yield chunk


async def stream_completion(
    config: ProviderConfig,
    prompt: str,
    *,
    signal: Optional[asyncio.Event] = None,
    client: Optional[httpx.AsyncClient] = None,
    max_tokens: Optional[int] = None,
) -> AsyncIterator[StreamChunk]:
    """Stream a raw text continuation of ``prompt`` with per-token logprobs."""
    params = build_completion_params(config, prompt, max_tokens)
    async for chunk in _stream_chunks(config, "/completions", params, parse_completion_chunk, signal, client):
        yield chunk


async def list_models(config: ProviderConfig, client: Optional[httpx.AsyncClient] = None) -> List[Dict[str, Any]]:
    url = build_url(config.base_url, "/models")
    owns_client = client is None
    http = client or httpx.AsyncClient()
    try:
        response = await http.get(url, headers=build_headers(config))
        if response.status_code >= 400:
            raise ProviderError(f"Request failed ({response.status_code})", response.status_code)
        payload = response.json()
    finally:
        if owns_client:
            await http.aclose()
    data = payload.get("data") if isinstance(payload, dict) else None
    return data if isinstance(data, list) else []


def create_stream_fn(config: ProviderConfig, client: Optional[httpx.AsyncClient] = None) -> StreamFn:
    def stream_fn(turns: Sequence[Turn], signal: Optional[asyncio.Event] = None) -> AsyncIterator[StreamChunk]:
        return stream_chat(config, to_model_messages(turns), signal=signal, client=client)

    return stream_fn


def create_completion_fn(config: ProviderConfig, client: Optional[httpx.AsyncClient] = None) -> CompletionFn:
    def completion_fn(prompt: str, signal: Optional[asyncio.Event] = None) -> AsyncIterator[StreamChunk]:
        return stream_completion(config, prompt, signal=signal, client=client)

    return completion_fn
