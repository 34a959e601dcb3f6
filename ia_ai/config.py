"""Environment-based provider configuration."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv

from .types import DEFAULT_BASE_URL, ProviderConfig

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant."

ENV_BASE_URL = "IASLATE_BASE_URL"
ENV_API_KEY = "IASLATE_API_KEY"
ENV_FALLBACK_API_KEY = "OPENAI_API_KEY"
ENV_MODEL = "IASLATE_MODEL"
ENV_TEMPERATURE = "IASLATE_TEMPERATURE"
ENV_TOP_LOGPROBS = "IASLATE_TOP_LOGPROBS"
ENV_LOGPROBS = "IASLATE_LOGPROBS"
ENV_SYSTEM_PROMPT = "IASLATE_SYSTEM_PROMPT"

_TRUTHY = {"1", "true", "yes", "on"}


class ConfigError(ValueError):
    pass


def _load_env(env_file: Optional[Union[str, Path]]) -> None:
    if env_file is not None:
        load_dotenv(dotenv_path=env_file, override=False)
    else:
        load_dotenv(override=False)


def _parse_number(name: str, raw: Optional[str], cast, default):
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc


def get_api_key() -> Optional[str]:
    return os.getenv(ENV_API_KEY) or os.getenv(ENV_FALLBACK_API_KEY)


def get_default_system_prompt() -> str:
    return os.getenv(ENV_SYSTEM_PROMPT) or DEFAULT_SYSTEM_PROMPT


def load_provider_config(env_file: Optional[Union[str, Path]] = None) -> ProviderConfig:
    _load_env(env_file)
    model_id = os.getenv(ENV_MODEL)
    if not model_id:
        raise ConfigError(f"{ENV_MODEL} is not set")
    return ProviderConfig(
        base_url=os.getenv(ENV_BASE_URL) or DEFAULT_BASE_URL,
        api_key=get_api_key(),
        model_id=model_id,
        temperature=_parse_number(ENV_TEMPERATURE, os.getenv(ENV_TEMPERATURE), float, 0.3),
        top_logprobs=_parse_number(ENV_TOP_LOGPROBS, os.getenv(ENV_TOP_LOGPROBS), int, 5),
        request_logprobs=(os.getenv(ENV_LOGPROBS) or "").strip().lower() in _TRUTHY,
    )
