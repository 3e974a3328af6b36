"""Shared test fixtures for mealkit."""

import os
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from mealkit.config import MealkitConfig, ModelProfile
from mealkit.extract.llm_client import LLMClient


@pytest.fixture
def clean_env():
    """Run with no provider keys or MEALKIT_ settings in the environment."""
    with patch.dict(os.environ, {}, clear=True):
        yield


@pytest.fixture
def config(clean_env) -> MealkitConfig:
    """Config with an OpenAI key and default profiles."""
    return MealkitConfig(openai_api_key="sk-test", _env_file=None)


@pytest.fixture
def fast_profile() -> ModelProfile:
    return ModelProfile(model="openai/gpt-4o-mini", max_tokens=500, temperature=0.3, timeout_ms=10_000)


@pytest.fixture
def llm(fast_profile) -> LLMClient:
    """A real client with a key; patch litellm.acompletion to drive it."""
    return LLMClient(fast_profile, api_key="sk-test")


@pytest.fixture
def fake_llm():
    """Stand-in client whose acall returns whatever the test sets."""
    client = MagicMock(spec=LLMClient)
    client.model = "openai/gpt-4o-mini"
    client.acall = AsyncMock(return_value="{}")
    return client


class _StaticIdentity:
    def __init__(self, tokens: dict[str, str]):
        self.tokens = tokens
        self.seen: list[str] = []

    def verify_token(self, token: str) -> str | None:
        self.seen.append(token)
        return self.tokens.get(token)


@pytest.fixture
def identity() -> _StaticIdentity:
    """Identity service that knows one valid token."""
    return _StaticIdentity({"good-token": "user-123"})
