from __future__ import annotations

import sys
from pathlib import Path

import pytest
from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

load_dotenv(dotenv_path=ROOT / ".env", override=False)

from tests.tree.helpers import make_tree  # noqa: E402

IASLATE_ENV_VARS = (
    "IASLATE_BASE_URL",
    "IASLATE_API_KEY",
    "OPENAI_API_KEY",
    "IASLATE_MODEL",
    "IASLATE_TEMPERATURE",
    "IASLATE_TOP_LOGPROBS",
    "IASLATE_LOGPROBS",
    "IASLATE_SYSTEM_PROMPT",
)


@pytest.fixture
def tree():
    return make_tree()


@pytest.fixture
def clean_env(monkeypatch):
    # setenv first so values written later by load_dotenv are undone too
    for name in IASLATE_ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch
